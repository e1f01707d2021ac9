"""agent-workbench - session activity and PR/board status sync core."""

__version__ = "0.1.0"
