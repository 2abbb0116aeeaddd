"""Model serialization for MCP responses."""

from typing import Any

from sqlalchemy import inspect

from manualtree.services.section.tree_operations import SectionTreeNode


def _serialize_value(value: Any) -> Any:
    if hasattr(value, "isoformat"):  # datetime
        return value.isoformat()
    return value


def serialize_model(obj: Any) -> dict[str, Any]:
    """
    Serialize a SQLAlchemy model to dictionary.

    Only column attributes are included; relationships are left to the
    callers that know which ones were loaded.

    Args:
        obj: SQLAlchemy model instance

    Returns:
        Dictionary representation of the model
    """
    mapper = inspect(obj).mapper
    return {
        attr.key: _serialize_value(getattr(obj, attr.key))
        for attr in mapper.column_attrs
    }


def serialize_section_tree(node: SectionTreeNode, include_policies: bool = True) -> dict[str, Any]:
    """
    Serialize section with children recursively.

    Args:
        node: Tree node built by SectionTreeBuilder
        include_policies: If True, add each section's policies in display order

    Returns:
        Dictionary representation of section with nested children
    """
    result = serialize_model(node.section)
    if include_policies:
        result["policies"] = [serialize_model(policy) for policy in node.section.policies]
    result["children"] = [
        serialize_section_tree(child, include_policies) for child in node.children
    ]
    return result


def serialize_manual_summary(summary: dict[str, Any]) -> dict[str, Any]:
    """Serialize a summary row from ManualService.list_manuals."""
    return {key: _serialize_value(value) for key, value in summary.items()}
