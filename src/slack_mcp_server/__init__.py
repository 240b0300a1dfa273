"""Slack MCP Server - Slack workspace operations exposed as MCP tools."""

__version__ = "1.0.0"
