"""Cross-layer drift correlation and risk escalation."""

__version__ = "0.1.0"
