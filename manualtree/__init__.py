"""manualtree: numbered, hierarchical section trees for policy manuals."""

__version__ = "0.1.0"
