"""Structure-preserving spreadsheet obfuscation."""

__version__ = "0.1.0"
