"""Section validation logic and request payloads."""

from dataclasses import dataclass, field
from typing import Any, Optional

from manualtree.exceptions import ValidationError


class SectionValidator:
    """Validates section data according to business rules."""

    # Validation constants
    TITLE_MIN_LENGTH = 1
    TITLE_MAX_LENGTH = 500
    DESCRIPTION_MAX_LENGTH = 10000
    ID_MAX_LENGTH = 255

    @staticmethod
    def validate_title(title: str) -> None:
        """
        Validate section title.

        Args:
            title: Title to validate

        Raises:
            ValidationError: If title is invalid
        """
        if not isinstance(title, str):
            raise ValidationError("Title must be a string", "title")
        if not title or not title.strip():
            raise ValidationError("Title is required and cannot be empty", "title")
        if len(title) > SectionValidator.TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title must be at most {SectionValidator.TITLE_MAX_LENGTH} characters", "title"
            )

    @staticmethod
    def validate_description(description: Optional[str]) -> None:
        """Validate an optional section description."""
        if description is None:
            return
        if not isinstance(description, str):
            raise ValidationError("Description must be a string", "description")
        if len(description) > SectionValidator.DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                f"Description must be at most {SectionValidator.DESCRIPTION_MAX_LENGTH} characters",
                "description",
            )

    @staticmethod
    def validate_id(resource_id: str, field_name: str = "id") -> None:
        """
        Validate a manual, section or policy ID.

        Args:
            resource_id: ID to validate
            field_name: Field reported on failure

        Raises:
            ValidationError: If the ID is invalid
        """
        if not isinstance(resource_id, str):
            raise ValidationError("ID must be a string", field_name)
        if not resource_id or not resource_id.strip():
            raise ValidationError("ID cannot be empty", field_name)
        if len(resource_id) > SectionValidator.ID_MAX_LENGTH:
            raise ValidationError(
                f"ID must be at most {SectionValidator.ID_MAX_LENGTH} characters", field_name
            )

    @staticmethod
    def validate_order_index(order_index: int) -> None:
        """Validate a requested sibling position."""
        # bool is an int subclass
        if not isinstance(order_index, int) or isinstance(order_index, bool):
            raise ValidationError("Order index must be an integer", "order_index")
        if order_index < 0:
            raise ValidationError("Order index must be non-negative", "order_index")

    @staticmethod
    def validate_expected_version(expected_version: Optional[int]) -> None:
        """Validate an optional optimistic-concurrency token."""
        if expected_version is None:
            return
        if not isinstance(expected_version, int) or isinstance(expected_version, bool):
            raise ValidationError("Expected version must be an integer", "expected_version")
        if expected_version < 0:
            raise ValidationError("Expected version must be non-negative", "expected_version")


# Marks a patch field the caller did not supply; None clears description.
UNSET: Any = object()


@dataclass
class SectionPatch:
    """Partial update of a section's descriptive fields. Tree shape is not patchable."""

    title: str = UNSET
    description: Optional[str] = UNSET
    is_collapsed: bool = UNSET

    FIELDS = ("title", "description", "is_collapsed")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SectionPatch":
        """Build a patch from a request payload, rejecting fields it cannot apply."""
        if not isinstance(data, dict):
            raise ValidationError("Patch must be an object", "patch")
        unknown = sorted(set(data) - set(cls.FIELDS))
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(unknown)}", unknown[0]
            )
        return cls(**{key: data[key] for key in cls.FIELDS if key in data})

    def validate(self) -> None:
        """Check every supplied field before anything is merged."""
        if self.title is not UNSET:
            SectionValidator.validate_title(self.title)
        if self.description is not UNSET:
            SectionValidator.validate_description(self.description)
        if self.is_collapsed is not UNSET and not isinstance(self.is_collapsed, bool):
            raise ValidationError("is_collapsed must be a boolean", "is_collapsed")

    def apply_to(self, section) -> list[str]:
        """Merge supplied fields into ``section``. Returns the names of changed fields."""
        changed = []
        for name in self.FIELDS:
            value = getattr(self, name)
            if value is not UNSET and getattr(section, name) != value:
                setattr(section, name, value)
                changed.append(name)
        return changed


@dataclass
class HierarchyNode:
    """One node of a client-submitted ordered forest."""

    id: str
    children: list["HierarchyNode"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "HierarchyNode":
        """Parse ``{"id": ..., "children": [...]}`` recursively."""
        if not isinstance(data, dict):
            raise ValidationError("Hierarchy node must be an object", "tree")
        if "id" not in data:
            raise ValidationError("Hierarchy node is missing 'id'", "tree")
        section_id = data["id"]
        SectionValidator.validate_id(section_id, "tree")
        children = data.get("children") or []
        if not isinstance(children, list):
            raise ValidationError(
                f"Children of section '{section_id}' must be a list", "tree"
            )
        return cls(id=section_id, children=[cls.from_dict(child) for child in children])


def parse_forest(data: Any) -> list[HierarchyNode]:
    """Parse a submitted forest (list of root nodes) into HierarchyNode objects."""
    if not isinstance(data, list):
        raise ValidationError("Hierarchy must be a list of root sections", "tree")
    return [
        node if isinstance(node, HierarchyNode) else HierarchyNode.from_dict(node)
        for node in data
    ]
