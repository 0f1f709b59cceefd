"""Query core for Windows Installer databases: statement splitting, WHERE conditions and joined, filtered views."""

__version__ = "0.1.0"
__all__ = ["types", "sqldelim", "expr", "where"]