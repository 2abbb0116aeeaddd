"""Storage layer for Manual Tree."""

from manualtree.storage.database import Database, get_db
from manualtree.storage.repositories import (
    ManualRepository,
    PolicyRepository,
    SectionRepository,
)

__all__ = [
    "Database",
    "get_db",
    "ManualRepository",
    "SectionRepository",
    "PolicyRepository",
]
