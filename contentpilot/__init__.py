"""ContentPilot: content extraction, multi-provider rewriting and scheduled auto-publishing."""

__version__ = "0.1.0"
