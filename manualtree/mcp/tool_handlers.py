"""MCP tool handlers for executing tool operations."""

import json
import logging
from typing import Any

from mcp import McpError
from mcp.types import ErrorData, TextContent

from manualtree.exceptions import (
    ConflictError,
    DatabaseError,
    DuplicateError,
    InvalidMoveError,
    NotFoundError,
    TreeCorruptionError,
    ValidationError,
)
from manualtree.mcp.serializers import (
    serialize_manual_summary,
    serialize_model,
    serialize_section_tree,
)
from manualtree.services.manual_service import ManualService
from manualtree.services.policy_service import PolicyService
from manualtree.services.section_service import SectionService

logger = logging.getLogger(__name__)

# JSON-RPC error codes
INVALID_PARAMS = -32602
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603
NOT_FOUND = -32001
DUPLICATE = -32002
INVALID_MOVE = -32003
CONFLICT = -32004


def _text(result: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2))]


# Manual handlers
async def handle_create_manual(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle create_manual tool."""
    with db.session() as session:
        manual_service = ManualService(session, actor_id=arguments.get("actor_id"))
        manual = manual_service.create_manual(
            title=arguments["title"],
            description=arguments.get("description"),
            manual_id=arguments.get("manual_id"),
        )
        return _text(serialize_model(manual))


async def handle_get_manual(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle get_manual tool."""
    with db.session() as session:
        manual = ManualService(session).get_manual(arguments["manual_id"])
        result = serialize_model(manual)
        if arguments.get("include_sections", True):
            hierarchy = SectionService(session).get_hierarchy(manual.id)
            result["sections"] = [serialize_section_tree(node) for node in hierarchy]
        return _text(result)


async def handle_list_manuals(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_manuals tool."""
    with db.session() as session:
        manuals = ManualService(session).list_manuals(
            limit=arguments.get("limit", 100),
            offset=arguments.get("offset", 0),
        )
        return _text({"manuals": [serialize_manual_summary(m) for m in manuals]})


async def handle_update_manual(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle update_manual tool."""
    with db.session() as session:
        manual_service = ManualService(session, actor_id=arguments.get("actor_id"))
        manual = manual_service.update_manual(
            manual_id=arguments["manual_id"],
            title=arguments.get("title"),
            description=arguments.get("description"),
            status=arguments.get("status"),
        )
        return _text(serialize_model(manual))


async def handle_delete_manual(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle delete_manual tool."""
    with db.session() as session:
        manual_service = ManualService(session, actor_id=arguments.get("actor_id"))
        deleted = manual_service.delete_manual(
            arguments["manual_id"], expected_version=arguments.get("expected_version")
        )
        return _text({"deleted": deleted})


# Section handlers
async def handle_list_sections(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle list_sections tool."""
    with db.session() as session:
        sections = SectionService(session).list_sections(arguments["manual_id"])
        result = {
            "sections": [
                dict(serialize_model(s), policies=[serialize_model(p) for p in s.policies])
                for s in sections
            ]
        }
        return _text(result)


async def handle_get_hierarchy(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle get_hierarchy tool."""
    with db.session() as session:
        hierarchy = SectionService(session).get_hierarchy(arguments["manual_id"])
        include_policies = arguments.get("include_policies", True)
        result = {
            "manual_id": arguments["manual_id"],
            "sections": [serialize_section_tree(node, include_policies) for node in hierarchy],
        }
        return _text(result)


async def handle_create_section(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle create_section tool."""
    with db.session() as session:
        section_service = SectionService(session, actor_id=arguments.get("actor_id"))
        section = section_service.create_section(
            manual_id=arguments["manual_id"],
            title=arguments["title"],
            description=arguments.get("description"),
            parent_section_id=arguments.get("parent_section_id"),
            section_id=arguments.get("section_id"),
        )
        return _text(serialize_model(section))


async def handle_update_section(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle update_section tool."""
    patch = {
        key: arguments[key]
        for key in ("title", "description", "is_collapsed")
        if key in arguments
    }
    with db.session() as session:
        section_service = SectionService(session, actor_id=arguments.get("actor_id"))
        section = section_service.update_section(arguments["section_id"], patch)
        return _text(serialize_model(section))


async def handle_move_section(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle move_section tool."""
    with db.session() as session:
        section_service = SectionService(session, actor_id=arguments.get("actor_id"))
        section = section_service.move_section(
            section_id=arguments["section_id"],
            new_parent_section_id=arguments.get("new_parent_section_id"),
            new_order_index=arguments["new_order_index"],
            expected_version=arguments.get("expected_version"),
        )
        return _text(serialize_model(section))


async def handle_apply_hierarchy(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle apply_hierarchy tool."""
    with db.session() as session:
        section_service = SectionService(session, actor_id=arguments.get("actor_id"))
        sections = section_service.apply_hierarchy(
            manual_id=arguments["manual_id"],
            tree=arguments["tree"],
            expected_version=arguments.get("expected_version"),
            allow_partial=arguments.get("allow_partial", False),
        )
        return _text({"sections": [serialize_model(s) for s in sections]})


async def handle_reorder_sections(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle reorder_sections tool."""
    with db.session() as session:
        section_service = SectionService(session, actor_id=arguments.get("actor_id"))
        sections = section_service.reorder_siblings(
            manual_id=arguments["manual_id"],
            parent_section_id=arguments.get("parent_section_id"),
            section_order=arguments["section_order"],
            expected_version=arguments.get("expected_version"),
        )
        return _text({"sections": [serialize_model(s) for s in sections]})


async def handle_renumber_sections(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle renumber_sections tool."""
    with db.session() as session:
        section_service = SectionService(session, actor_id=arguments.get("actor_id"))
        sections = section_service.renumber_all(
            manual_id=arguments["manual_id"],
            expected_version=arguments.get("expected_version"),
        )
        return _text({"sections": [serialize_model(s) for s in sections]})


async def handle_delete_section(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle delete_section tool."""
    with db.session() as session:
        section_service = SectionService(session, actor_id=arguments.get("actor_id"))
        result = section_service.delete_section(
            section_id=arguments["section_id"],
            renumber=arguments.get("renumber", False),
            expected_version=arguments.get("expected_version"),
        )
        return _text(result.to_dict())


# Policy handlers
async def handle_create_policy(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle create_policy tool."""
    with db.session() as session:
        policy_service = PolicyService(session, actor_id=arguments.get("actor_id"))
        policy = policy_service.create_policy(
            section_id=arguments["section_id"],
            title=arguments["title"],
            body_content=arguments.get("body_content", ""),
            status=arguments.get("status", "DRAFT"),
            policy_id=arguments.get("policy_id"),
        )
        return _text(serialize_model(policy))


async def handle_reorder_policies(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle reorder_policies tool."""
    with db.session() as session:
        policy_service = PolicyService(session, actor_id=arguments.get("actor_id"))
        policies = policy_service.reorder_policies(
            section_id=arguments["section_id"],
            policy_order=arguments["policy_order"],
        )
        return _text({"policies": [serialize_model(p) for p in policies]})


async def handle_delete_policy(arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """Handle delete_policy tool."""
    with db.session() as session:
        policy_service = PolicyService(session, actor_id=arguments.get("actor_id"))
        counts = policy_service.delete_policy(arguments["policy_id"])
        return _text({"policy_id": arguments["policy_id"], "counts": counts})


# Tool handler registry
TOOL_HANDLERS: dict[str, callable] = {
    "create_manual": handle_create_manual,
    "get_manual": handle_get_manual,
    "list_manuals": handle_list_manuals,
    "update_manual": handle_update_manual,
    "delete_manual": handle_delete_manual,
    "list_sections": handle_list_sections,
    "get_hierarchy": handle_get_hierarchy,
    "create_section": handle_create_section,
    "update_section": handle_update_section,
    "move_section": handle_move_section,
    "apply_hierarchy": handle_apply_hierarchy,
    "reorder_sections": handle_reorder_sections,
    "renumber_sections": handle_renumber_sections,
    "delete_section": handle_delete_section,
    "create_policy": handle_create_policy,
    "reorder_policies": handle_reorder_policies,
    "delete_policy": handle_delete_policy,
}


async def call_tool_handler(tool_name: str, arguments: dict[str, Any], db: Any) -> list[TextContent]:
    """
    Call the appropriate tool handler.

    Args:
        tool_name: Name of the tool to call
        arguments: Tool arguments
        db: Database instance

    Returns:
        List of TextContent with tool execution result

    Raises:
        McpError: If tool name is unknown or handler raises an error
    """
    if tool_name not in TOOL_HANDLERS:
        raise McpError(ErrorData(code=METHOD_NOT_FOUND, message=f"Unknown tool: {tool_name}"))

    handler = TOOL_HANDLERS[tool_name]

    try:
        return await handler(arguments, db)
    except McpError:
        raise
    except KeyError as e:
        raise McpError(
            ErrorData(code=INVALID_PARAMS, message=f"Missing required argument: {e.args[0]}")
        ) from e
    except ValidationError as e:
        raise McpError(
            ErrorData(code=INVALID_PARAMS, message=f"Validation error: {str(e)}")
        ) from e
    except InvalidMoveError as e:
        raise McpError(ErrorData(code=INVALID_MOVE, message=f"Invalid move: {str(e)}")) from e
    except NotFoundError as e:
        raise McpError(ErrorData(code=NOT_FOUND, message=str(e))) from e
    except DuplicateError as e:
        raise McpError(ErrorData(code=DUPLICATE, message=str(e))) from e
    except ConflictError as e:
        raise McpError(ErrorData(code=CONFLICT, message=str(e))) from e
    except TreeCorruptionError as e:
        logger.error("Section tree corrupted during %s: %s", tool_name, e)
        raise McpError(
            ErrorData(code=INTERNAL_ERROR, message=f"Tree corruption: {str(e)}")
        ) from e
    except DatabaseError as e:
        raise McpError(
            ErrorData(code=INTERNAL_ERROR, message=f"Database error: {str(e)}")
        ) from e
    except Exception as e:
        logger.exception("Tool %s failed", tool_name)
        raise McpError(ErrorData(code=INTERNAL_ERROR, message=f"Internal error: {str(e)}")) from e
