"""CLI commands for agent-workbench."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from agent_workbench import __version__

app = typer.Typer(
    name="agent-workbench",
    help="agent-workbench - coding-agent workspace daemon",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"agent-workbench v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """agent-workbench entrypoint."""
    del version
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


@app.command()
def init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config."),
) -> None:
    """Write a default config file."""
    from agent_workbench.config.loader import get_config_path, save_config
    from agent_workbench.config.schema import Config

    config_path = get_config_path()
    if config_path.exists() and not force:
        console.print(f"[yellow]Config already exists at {config_path} (use --force).[/yellow]")
        raise typer.Exit()
    save_config(Config())
    console.print(f"[green]OK[/green] Created config at {config_path}")


@app.command()
def status() -> None:
    """Show saved workspaces, their tabs and session ids."""
    from agent_workbench.config.loader import load_config
    from agent_workbench.workspace import WorkspaceFile, WorkspaceStore

    config = load_config()
    store = WorkspaceStore(WorkspaceFile(config.workspaces_file))
    if not store.load():
        console.print(f"No workspaces saved in [cyan]{config.workspaces_file}[/cyan]")
        return

    table = Table(title="Workspaces")
    table.add_column("Project")
    table.add_column("Branch")
    table.add_column("Tab")
    table.add_column("Type")
    table.add_column("Session")
    for ws in store.workspaces:
        marker = "*" if ws.id == store.selected_id else ""
        for index, tab in enumerate(ws.tabs):
            ai_pane = tab.ai_pane()
            table.add_row(
                f"{marker}{ws.project_name}" if index == 0 else "",
                (ws.branch or "") if index == 0 else "",
                tab.label,
                tab.session_type,
                (ai_pane.session_id if ai_pane else None) or "-",
            )
    console.print(table)


@app.command()
def sessions(
    project: Path = typer.Argument(Path("."), help="Project directory."),
    agent: str = typer.Option("claude", "--agent", "-a", help="claude | codex"),
) -> None:
    """List resumable agent sessions recorded for a project."""
    from agent_workbench.agents import AGENT_DEFS
    from agent_workbench.sessions import LocalSessionDiscovery

    if agent not in AGENT_DEFS or not AGENT_DEFS[agent].is_agent:
        console.print(f"[red]Unknown agent '{agent}'.[/red]")
        raise typer.Exit(1)

    project_path = str(project.expanduser().resolve())
    found = asyncio.run(LocalSessionDiscovery().discover(agent, project_path))
    if not found:
        console.print(f"No {agent} sessions for [cyan]{project_path}[/cyan]")
        return

    table = Table(title=f"{AGENT_DEFS[agent].label} sessions")
    table.add_column("Session id")
    table.add_column("Last active")
    table.add_column("First prompt")
    for session in found:
        table.add_row(session.session_id, session.timestamp, session.label)
    console.print(table)


@app.command("pr-status")
def pr_status(
    project: Path = typer.Argument(Path("."), help="Project directory."),
) -> None:
    """Fetch PRs, checks and branch runs for a project once."""
    from agent_workbench.config.loader import load_config
    from agent_workbench.errors import WorkbenchError
    from agent_workbench.github import GhCliGateway

    config = load_config()
    gateway = GhCliGateway(config.github.command, config.github.command_timeout_s)
    project_path = str(project.expanduser().resolve())

    async def fetch():
        await gateway.require_available()
        return await gateway.project_status(project_path)

    try:
        project_status = asyncio.run(fetch())
    except WorkbenchError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    if project_status.remote is None:
        console.print(f"No GitHub remote for [cyan]{project_path}[/cyan]")
        return

    table = Table(title=f"{project_status.remote.owner}/{project_status.remote.repo}")
    table.add_column("PR")
    table.add_column("Branch")
    table.add_column("State")
    table.add_column("Checks")
    table.add_column("Review")
    for pr in project_status.prs:
        checks = pr.checks_status
        table.add_row(
            f"#{pr.number} {pr.title}",
            pr.head_branch,
            "DRAFT" if pr.is_draft else pr.state,
            f"{checks.overall} ({checks.passing}/{checks.total})",
            pr.review_decision or "-",
        )
    console.print(table)


@app.command()
def link(
    card_id: str = typer.Argument(..., help="Trello card id."),
    board_id: str = typer.Argument(..., help="Trello board id."),
    branch: str = typer.Option(..., "--branch", "-b", help="Branch the card tracks."),
    project: Path = typer.Option(Path("."), "--project", "-p", help="Project directory."),
    worktree: Optional[Path] = typer.Option(None, "--worktree", help="Worktree directory."),
) -> None:
    """Link a Trello card to a branch and run the board's link action."""
    from agent_workbench.app import Workbench
    from agent_workbench.config.loader import load_config
    from agent_workbench.errors import ConfigurationMissing

    workbench = Workbench(load_config())
    try:
        workbench.board_store.require_credentials()
    except ConfigurationMissing as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    project_path = str(project.expanduser().resolve())
    worktree_path = str(worktree.expanduser().resolve()) if worktree else None
    asyncio.run(
        workbench.automation.link_task(project_path, card_id, board_id, branch, worktree_path)
    )
    console.print(f"[green]OK[/green] Linked {card_id} to [cyan]{branch}[/cyan]")


@app.command()
def serve() -> None:
    """Run the workbench services until interrupted."""
    from agent_workbench.app import Workbench
    from agent_workbench.config.loader import load_config

    config = load_config()
    workbench = Workbench(config)

    console.print("Starting agent-workbench")
    console.print(f"Data dir: [cyan]{config.data_path}[/cyan]")
    if config.hooks.enabled:
        console.print(f"Hook socket: [cyan]{config.hook_socket_path}[/cyan]")

    async def run_stack() -> None:
        await workbench.start()
        try:
            await asyncio.Event().wait()
        finally:
            await workbench.stop()

    try:
        asyncio.run(run_stack())
    except KeyboardInterrupt:
        console.print("\nStopped.")


if __name__ == "__main__":
    app()
