"""MCP tool schema definitions."""

from typing import Any

_EXPECTED_VERSION = {
    "type": "integer",
    "description": "Tree version the caller last read; the call fails with a conflict if it has moved on",
}
_ACTOR_ID = {"type": "string", "description": "Optional ID of the acting user (for auditing)"}

_HIERARCHY_NODE = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Section ID"},
        "children": {
            "type": "array",
            "description": "Child nodes in display order (same shape, recursive)",
            "items": {"type": "object"},
        },
    },
    "required": ["id"],
}


def get_tool_schemas() -> dict[str, dict[str, Any]]:
    """Get all MCP tool schemas."""
    return {
        "create_manual": {
            "name": "create_manual",
            "description": "Create a new, empty manual",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Manual title"},
                    "description": {"type": "string", "description": "Optional description"},
                    "manual_id": {
                        "type": "string",
                        "description": "Optional manual ID (generates UUID if not provided)",
                    },
                    "actor_id": _ACTOR_ID,
                },
                "required": ["title"],
            },
        },
        "get_manual": {
            "name": "get_manual",
            "description": "Retrieve a manual by ID with its numbered section tree",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                    "include_sections": {
                        "type": "boolean",
                        "description": "Include the section tree in response (default: true)",
                    },
                },
                "required": ["manual_id"],
            },
        },
        "list_manuals": {
            "name": "list_manuals",
            "description": "List manuals with section counts and tree versions",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of manuals (default: 100)",
                    },
                    "offset": {
                        "type": "integer",
                        "description": "Number of manuals to skip (default: 0)",
                    },
                },
            },
        },
        "update_manual": {
            "name": "update_manual",
            "description": "Update manual title, description or status",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                    "title": {"type": "string", "description": "New title"},
                    "description": {"type": "string", "description": "New description"},
                    "status": {"type": "string", "enum": ["DRAFT", "LIVE"]},
                    "actor_id": _ACTOR_ID,
                },
                "required": ["manual_id"],
            },
        },
        "delete_manual": {
            "name": "delete_manual",
            "description": "Delete a manual with all of its sections and policies",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                    "expected_version": _EXPECTED_VERSION,
                    "actor_id": _ACTOR_ID,
                },
                "required": ["manual_id"],
            },
        },
        "list_sections": {
            "name": "list_sections",
            "description": "List all sections of a manual, flat, ordered by level then sibling order",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                },
                "required": ["manual_id"],
            },
        },
        "get_hierarchy": {
            "name": "get_hierarchy",
            "description": "Get the nested section tree of a manual",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                    "include_policies": {
                        "type": "boolean",
                        "description": "Include each section's policies (default: true)",
                    },
                },
                "required": ["manual_id"],
            },
        },
        "create_section": {
            "name": "create_section",
            "description": "Create a section at the end of its parent's children (top level if no parent)",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                    "title": {"type": "string", "description": "Section title"},
                    "description": {"type": "string", "description": "Optional description"},
                    "parent_section_id": {
                        "type": "string",
                        "description": "Optional parent section ID for nesting",
                    },
                    "section_id": {
                        "type": "string",
                        "description": "Optional section ID (generates UUID if not provided)",
                    },
                    "actor_id": _ACTOR_ID,
                },
                "required": ["manual_id", "title"],
            },
        },
        "update_section": {
            "name": "update_section",
            "description": "Update a section's title, description or collapsed flag (never its position)",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "section_id": {"type": "string", "description": "Section ID"},
                    "title": {"type": "string", "description": "New title"},
                    "description": {"type": ["string", "null"], "description": "New description"},
                    "is_collapsed": {"type": "boolean", "description": "Collapsed in outline views"},
                    "actor_id": _ACTOR_ID,
                },
                "required": ["section_id"],
            },
        },
        "move_section": {
            "name": "move_section",
            "description": "Move a section and its subtree under a new parent at a given position",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "section_id": {"type": "string", "description": "Section ID to move"},
                    "new_parent_section_id": {
                        "type": ["string", "null"],
                        "description": "New parent section ID (null for top level)",
                    },
                    "new_order_index": {
                        "type": "integer",
                        "description": "0-based position among the new siblings; past the end appends",
                    },
                    "expected_version": _EXPECTED_VERSION,
                    "actor_id": _ACTOR_ID,
                },
                "required": ["section_id", "new_order_index"],
            },
        },
        "apply_hierarchy": {
            "name": "apply_hierarchy",
            "description": "Apply a full ordered section tree (e.g. after drag and drop) in one transaction",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                    "tree": {
                        "type": "array",
                        "description": "Root nodes in display order",
                        "items": _HIERARCHY_NODE,
                    },
                    "allow_partial": {
                        "type": "boolean",
                        "description": "Accept a tree that leaves out sections (default: false)",
                    },
                    "expected_version": _EXPECTED_VERSION,
                    "actor_id": _ACTOR_ID,
                },
                "required": ["manual_id", "tree"],
            },
        },
        "reorder_sections": {
            "name": "reorder_sections",
            "description": "Reorder the children of one parent (or the top-level sections)",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                    "parent_section_id": {
                        "type": ["string", "null"],
                        "description": "Parent section ID (null for top level)",
                    },
                    "section_order": {
                        "type": "array",
                        "description": "Every child ID in the desired order",
                        "items": {"type": "string"},
                    },
                    "expected_version": _EXPECTED_VERSION,
                    "actor_id": _ACTOR_ID,
                },
                "required": ["manual_id", "section_order"],
            },
        },
        "renumber_sections": {
            "name": "renumber_sections",
            "description": "Recompute every section number, level and sibling order of a manual",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "manual_id": {"type": "string", "description": "Manual ID"},
                    "expected_version": _EXPECTED_VERSION,
                    "actor_id": _ACTOR_ID,
                },
                "required": ["manual_id"],
            },
        },
        "delete_section": {
            "name": "delete_section",
            "description": "Delete a section, its subsections and all their policies with dependent records",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "section_id": {"type": "string", "description": "Section ID"},
                    "renumber": {
                        "type": "boolean",
                        "description": "Renumber the remaining sections afterwards (default: false)",
                    },
                    "expected_version": _EXPECTED_VERSION,
                    "actor_id": _ACTOR_ID,
                },
                "required": ["section_id"],
            },
        },
        "create_policy": {
            "name": "create_policy",
            "description": "Create a policy at the end of a section",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "section_id": {"type": "string", "description": "Section ID"},
                    "title": {"type": "string", "description": "Policy title"},
                    "body_content": {"type": "string", "description": "Body of the first version"},
                    "status": {"type": "string", "enum": ["DRAFT", "LIVE"]},
                    "policy_id": {
                        "type": "string",
                        "description": "Optional policy ID (generates UUID if not provided)",
                    },
                    "actor_id": _ACTOR_ID,
                },
                "required": ["section_id", "title"],
            },
        },
        "reorder_policies": {
            "name": "reorder_policies",
            "description": "Reorder the policies within a section",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "section_id": {"type": "string", "description": "Section ID"},
                    "policy_order": {
                        "type": "array",
                        "description": "Policy IDs in the desired order",
                        "items": {"type": "string"},
                    },
                    "actor_id": _ACTOR_ID,
                },
                "required": ["section_id", "policy_order"],
            },
        },
        "delete_policy": {
            "name": "delete_policy",
            "description": "Delete a policy with its versions, acknowledgements, annotations, approvals and signatures",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "policy_id": {"type": "string", "description": "Policy ID"},
                    "actor_id": _ACTOR_ID,
                },
                "required": ["policy_id"],
            },
        },
    }
