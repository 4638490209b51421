"""spacebot: room and desk search tools for AI agents."""

__version__ = "0.1.0"
