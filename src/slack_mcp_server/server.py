"""FastMCP server exposing the Slack tools."""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.tools import Tool, ToolResult
from pydantic import Field
from pydantic.json_schema import SkipJsonSchema

from . import __version__
from .registry import ServiceRegistry, ToolDefinition

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[dict[str, Any]]]

SERVER_NAME = "Slack MCP Server"

SERVER_INSTRUCTIONS = (
    "Tools for reading and writing a Slack workspace: messages, threads, files, reactions and workspace "
    "analytics. Search tools need a user token (xoxp-). Every tool answers with a JSON document carrying "
    "statusCode 10000 on success or 10001 on failure."
)


class SlackTool(Tool):
    """A tool whose arguments are validated by the service layer, not by fastmcp.

    ``parameters`` is the input model's JSON Schema so clients see the same
    constraints the service enforces.
    """

    handler: Annotated[SkipJsonSchema[Handler], Field(exclude=True)]

    @classmethod
    def from_definition(cls, definition: ToolDefinition, handler: Handler) -> "SlackTool":
        return cls(
            name=definition.name,
            description=definition.description,
            parameters=definition.model.model_json_schema(),
            tags={definition.domain},
            handler=handler,
        )

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        response = await self.handler(arguments)
        text = "\n".join(block["text"] for block in response["content"])
        return ToolResult(content=text, is_error=response.get("isError", False))


def build_server(registry: ServiceRegistry, domains: tuple[str, ...] | None = None) -> FastMCP:
    """Register one ``SlackTool`` per enabled tool on a new FastMCP instance."""
    mcp = FastMCP(name=SERVER_NAME, instructions=SERVER_INSTRUCTIONS, version=__version__)

    definitions = registry.enabled_definitions(domains)
    for definition in definitions:
        mcp.add_tool(SlackTool.from_definition(definition, registry.get(definition.name)))

    enabled = sorted({d.domain for d in definitions})
    logger.info(f"Registered {len(definitions)} tools for domains: {', '.join(enabled)}")
    return mcp


def run_server(mcp: FastMCP, transport: str = "stdio") -> None:
    """Run the MCP server."""
    mcp.run(transport=transport)
