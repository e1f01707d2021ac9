"""Entry point for ``python -m agent_workbench``."""

from agent_workbench.cli.commands import app

if __name__ == "__main__":
    app()
