"""Tool-call dispatch and cart reconciliation engine for a voice sommelier."""

__version__ = "0.1.0"
