"""MCP module with tool schemas, handlers, and serializers."""

from manualtree.mcp.serializers import serialize_model, serialize_section_tree
from manualtree.mcp.tool_handlers import TOOL_HANDLERS, call_tool_handler
from manualtree.mcp.tool_schemas import get_tool_schemas

__all__ = [
    "call_tool_handler",
    "TOOL_HANDLERS",
    "get_tool_schemas",
    "serialize_model",
    "serialize_section_tree",
]
