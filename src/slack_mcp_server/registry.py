"""Tool catalogue and the registry that wires services to shared infrastructure."""

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from . import schemas
from .adapter import AdaptedOperation, adapt_service
from .clients import SlackClientManager
from .config import DOMAINS, ServerConfig
from .rate_limit import RateLimitService
from .request_handler import RequestHandler
from .services import (
    BaseService,
    FileService,
    MessageService,
    ReactionService,
    ServiceDependencies,
    ThreadService,
    WorkspaceService,
)
from .users import UserService

logger = logging.getLogger(__name__)

SERVICE_CLASSES: dict[str, type[BaseService]] = {
    "messages": MessageService,
    "threads": ThreadService,
    "files": FileService,
    "reactions": ReactionService,
    "workspace": WorkspaceService,
}


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    model: type[BaseModel]
    domain: str


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    # ---------- Messages ----------
    ToolDefinition("send_message", "Send a message to a Slack channel or user", schemas.SendMessageInput, "messages"),
    ToolDefinition("list_channels", "List all channels in the Slack workspace", schemas.ListChannelsInput, "messages"),
    ToolDefinition(
        "get_channel_history", "Get message history from a Slack channel", schemas.GetChannelHistoryInput, "messages"
    ),
    ToolDefinition("get_user_info", "Get information about a Slack user", schemas.GetUserInfoInput, "messages"),
    ToolDefinition(
        "search_messages",
        "Search for messages in the Slack workspace (requires a user token)",
        schemas.SearchMessagesInput,
        "messages",
    ),
    ToolDefinition(
        "get_channel_info", "Get detailed information about a Slack channel", schemas.GetChannelInfoInput, "messages"
    ),
    # ---------- Threads ----------
    ToolDefinition(
        "find_threads_in_channel",
        "Find all threaded conversations in a specific channel",
        schemas.FindThreadsInChannelInput,
        "threads",
    ),
    ToolDefinition(
        "get_thread_replies",
        "Get complete thread content including parent message and all replies",
        schemas.GetThreadRepliesInput,
        "threads",
    ),
    ToolDefinition(
        "search_threads",
        "Search for threads by keywords, participants, or content (requires a user token)",
        schemas.SearchThreadsInput,
        "threads",
    ),
    ToolDefinition(
        "analyze_thread",
        "Analyze thread structure, participants, timeline, and extract key topics",
        schemas.AnalyzeThreadInput,
        "threads",
    ),
    ToolDefinition(
        "summarize_thread",
        "Generate a summary of thread content with key points and decisions",
        schemas.SummarizeThreadInput,
        "threads",
    ),
    ToolDefinition("post_thread_reply", "Post a reply to an existing thread", schemas.PostThreadReplyInput, "threads"),
    ToolDefinition(
        "create_thread",
        "Create a new thread by posting a parent message and optional first reply",
        schemas.CreateThreadInput,
        "threads",
    ),
    ToolDefinition(
        "mark_thread_important",
        "Mark a thread as important with reactions and notifications",
        schemas.MarkThreadImportantInput,
        "threads",
    ),
    ToolDefinition(
        "extract_action_items",
        "Extract action items and tasks from thread messages",
        schemas.ExtractActionItemsInput,
        "threads",
    ),
    ToolDefinition(
        "identify_important_threads",
        "Identify important or urgent threads in a channel based on various criteria",
        schemas.IdentifyImportantThreadsInput,
        "threads",
    ),
    ToolDefinition(
        "export_thread",
        "Export thread content in various formats (markdown, JSON, HTML, CSV)",
        schemas.ExportThreadInput,
        "threads",
    ),
    ToolDefinition(
        "find_related_threads",
        "Find threads related to a given thread based on content, participants, or topics",
        schemas.FindRelatedThreadsInput,
        "threads",
    ),
    ToolDefinition(
        "get_thread_metrics",
        "Get statistics and metrics about threads in a channel or workspace",
        schemas.GetThreadMetricsInput,
        "threads",
    ),
    ToolDefinition(
        "get_threads_by_participants",
        "Find threads that include specific participants",
        schemas.GetThreadsByParticipantsInput,
        "threads",
    ),
    # ---------- Files ----------
    ToolDefinition("upload_file", "Upload a file to Slack channels or threads", schemas.UploadFileInput, "files"),
    ToolDefinition("list_files", "List files in workspace with filtering options", schemas.ListFilesInput, "files"),
    ToolDefinition(
        "get_file_info", "Get detailed information about a specific file", schemas.GetFileInfoInput, "files"
    ),
    ToolDefinition("delete_file", "Delete a file (where permitted)", schemas.DeleteFileInput, "files"),
    ToolDefinition("share_file", "Share an existing file to additional channels", schemas.ShareFileInput, "files"),
    ToolDefinition(
        "analyze_files",
        "Analyze file types, sizes, and usage patterns in workspace",
        schemas.AnalyzeFilesInput,
        "files",
    ),
    ToolDefinition(
        "search_files",
        "Search for files by name, type, or content (requires a user token)",
        schemas.SearchFilesInput,
        "files",
    ),
    ToolDefinition(
        "get_message_images", "Get all images from a specific message", schemas.GetMessageImagesInput, "files"
    ),
    # ---------- Reactions ----------
    ToolDefinition("add_reaction", "Add a reaction emoji to a message", schemas.AddReactionInput, "reactions"),
    ToolDefinition(
        "remove_reaction", "Remove a reaction emoji from a message", schemas.RemoveReactionInput, "reactions"
    ),
    ToolDefinition("get_reactions", "Get all reactions on a specific message", schemas.GetReactionsInput, "reactions"),
    ToolDefinition(
        "get_reaction_statistics",
        "Get reaction statistics and trends for workspace or channel",
        schemas.GetReactionStatisticsInput,
        "reactions",
    ),
    ToolDefinition(
        "find_messages_by_reactions",
        "Find messages that have specific reaction patterns",
        schemas.FindMessagesByReactionsInput,
        "reactions",
    ),
    # ---------- Workspace ----------
    ToolDefinition(
        "get_workspace_info", "Get workspace/team information and settings", schemas.GetWorkspaceInfoInput, "workspace"
    ),
    ToolDefinition(
        "list_team_members",
        "List all team members with their roles and status",
        schemas.ListTeamMembersInput,
        "workspace",
    ),
    ToolDefinition(
        "get_workspace_activity",
        "Generate comprehensive workspace activity report",
        schemas.GetWorkspaceActivityInput,
        "workspace",
    ),
    ToolDefinition(
        "get_server_health",
        "Get MCP server health status and performance metrics",
        schemas.GetServerHealthInput,
        "workspace",
    ),
)


class ServiceRegistry:
    """Every adapted tool operation, reachable as ``registry.<tool_name>``."""

    def __init__(self, deps: ServiceDependencies):
        self.deps = deps
        self.services: dict[str, BaseService] = {}
        self.tools: dict[str, AdaptedOperation] = {}
        for domain, service_cls in SERVICE_CLASSES.items():
            service = service_cls(deps)
            self.services[domain] = service
            self.tools.update(adapt_service(service))

        for name, operation in self.tools.items():
            setattr(self, name, operation)

    def get(self, name: str) -> AdaptedOperation:
        return self.tools[name]

    def enabled_definitions(self, domains: tuple[str, ...] | None = None) -> list[ToolDefinition]:
        """Tool definitions for ``domains``, defaulting to the configured ones."""
        if domains is None:
            config = self.deps.config
            domains = config.enabled_domains if config is not None else DOMAINS
        return [d for d in TOOL_DEFINITIONS if d.domain in domains]


def create_registry(
    config: ServerConfig, client_manager: SlackClientManager | None = None, **kwargs: Any
) -> ServiceRegistry:
    """Build the shared infrastructure once and hand it to every service.

    ``client_manager`` can be injected (tests); other keyword arguments go to
    ``RateLimitService``.
    """
    if client_manager is None:
        client_manager = SlackClientManager.from_config(config)

    rate_limiter = RateLimitService(
        max_concurrency=config.max_request_concurrency,
        retries=config.rate_limit_retries,
        reject_rate_limited_calls=config.reject_rate_limited_calls,
        enable_retry=config.enable_rate_limit_retry,
        **kwargs,
    )
    deps = ServiceDependencies(
        client_manager=client_manager,
        rate_limiter=rate_limiter,
        request_handler=RequestHandler(),
        user_service=UserService(client_manager, rate_limiter),
        config=config,
    )
    registry = ServiceRegistry(deps)
    logger.debug(f"Registered {len(registry.tools)} tool operations")
    return registry
