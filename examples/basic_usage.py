"""Basic usage example for the manualtree services."""

from manualtree.config import configure_logging
from manualtree.services import ManualService, PolicyService, SectionService
from manualtree.storage import Database


def print_outline(section_service: SectionService, manual_id: str) -> None:
    pending = list(reversed(section_service.get_hierarchy(manual_id)))
    while pending:
        node = pending.pop()
        indent = "  " * node.section.level
        policies = len(node.section.policies)
        print(f"{indent}{node.section.section_number} {node.section.title} ({policies} policies)")
        pending.extend(reversed(node.children))


def main():
    """Build a small manual, restructure it and print the outline after each step."""
    configure_logging()

    # Initialize database (uses SQLite by default)
    db = Database()
    db.create_tables()

    with db.session() as session:
        manuals = ManualService(session, actor_id="example")
        sections = SectionService(session, actor_id="example")
        policies = PolicyService(session, actor_id="example")

        manual = manuals.create_manual(title="Staff Handbook")
        print(f"Created manual: {manual.title} (ID: {manual.id})")

        intro = sections.create_section(manual.id, "Introduction")
        leave = sections.create_section(manual.id, "Leave")
        annual = sections.create_section(manual.id, "Annual leave", parent_section_id=leave.id)
        sick = sections.create_section(manual.id, "Sick leave", parent_section_id=leave.id)
        conduct = sections.create_section(manual.id, "Conduct")
        policies.create_policy(annual.id, "Carry-over of unused days", body_content="Up to five days.")
        policies.create_policy(sick.id, "Doctor's note", body_content="Required after three days.")

        print("\n--- Initial outline ---")
        print_outline(sections, manual.id)

        # Conduct becomes the first chapter of the introduction
        sections.move_section(conduct.id, intro.id, 0)
        # Sick leave before annual leave
        sections.reorder_siblings(manual.id, leave.id, [sick.id, annual.id])

        print("\n--- After moving and reordering ---")
        print_outline(sections, manual.id)

        result = sections.delete_section(intro.id, renumber=True)
        print(f"\nDeleted {result.counts['sections']} sections")

        print("\n--- After deleting the introduction ---")
        print_outline(sections, manual.id)

    print("\nAll operations completed successfully!")


if __name__ == "__main__":
    main()
