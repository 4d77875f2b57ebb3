"""
podmesh CLI

Command-line interface for sharing resources between agent pods.

Usage:
    podmesh discover [--name NAME | --capability CAP]   Find agents
    podmesh register --name NAME [--capability CAP]     Join the directory
    podmesh inbox [--delete URL]                        Read or clear your inbox
    podmesh grant RESOURCE AGENT [--modes Read,Write]   Grant access
    podmesh revoke RESOURCE AGENT                       Revoke access
    podmesh access RESOURCE                             Show current grants
    podmesh share RESOURCE --with NAME                  Grant and notify

Configuration comes from PODMESH_* environment variables (or .env).
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx
import typer
from rich.console import Console
from rich.table import Table

from podmesh import __version__
from podmesh.core.auth import create_client
from podmesh.core.config import get_directory_url, get_inbox_url, get_settings
from podmesh.core.errors import PodmeshError
from podmesh.core.models import DirectoryEntry, parse_modes
from podmesh.discovery.directory import AgentDirectory
from podmesh.notifications.inbox import InboxManager, sort_by_published
from podmesh.sharing.access import AccessControlManager
from podmesh.sharing.share import SharingService

# Create the main app
app = typer.Typer(
    name="podmesh",
    help="podmesh - Capability sharing between agent pods",
    add_completion=False,
)

# Console for rich output
console = Console()


def _run(operation: Callable[[httpx.AsyncClient], Awaitable[Any]]) -> Any:
    """Run an async operation with a configured client, exiting 1 on failure."""

    async def runner() -> Any:
        async with create_client() as client:
            return await operation(client)

    try:
        return asyncio.run(runner())
    except (PodmeshError, httpx.HTTPError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


def _require_web_id() -> str:
    web_id = get_settings().web_id
    if not web_id:
        console.print("[red]Error: PODMESH_WEB_ID is not set[/red]")
        raise typer.Exit(code=1)
    return web_id


# =============================================================================
# Discovery Commands
# =============================================================================


@app.command()
def discover(
    name: str | None = typer.Option(None, "--name", "-n", help="Find an agent by name"),
    capability: str | None = typer.Option(None, "--capability", "-c", help="Find agents by capability"),
) -> None:
    """Find agents in the shared directory."""
    directory_url = get_directory_url()

    if name:
        entry = _run(lambda client: AgentDirectory(client).find_by_name(directory_url, name))
        if entry is None:
            console.print(f'[yellow]No agent found with name "{name}"[/yellow]')
            return
        console.print_json(entry.model_dump_json())
        return

    if capability:
        entries = _run(lambda client: AgentDirectory(client).find_by_capability(directory_url, capability))
    else:
        entries = _run(lambda client: AgentDirectory(client).list(directory_url))

    table = Table(title="Agents")
    table.add_column("Name", style="cyan")
    table.add_column("WebID")
    table.add_column("Capabilities", style="green")
    for entry in entries:
        table.add_row(entry.name, entry.web_id, ", ".join(entry.capabilities))
    console.print(table)


@app.command()
def register(
    name: str = typer.Option(..., "--name", "-n", help="Display name"),
    capability: list[str] | None = typer.Option(None, "--capability", "-c", help="Declared capability (repeatable)"),
) -> None:
    """Register the configured agent in the shared directory."""
    settings = get_settings()
    entry = DirectoryEntry(
        web_id=_require_web_id(),
        name=name,
        pod_url=settings.pod_url,
        capabilities=capability or [],
    )
    directory_url = get_directory_url()

    _run(lambda client: AgentDirectory(client).register(directory_url, entry))
    console.print(f"[green]✓[/green] Registered {name} in {directory_url}")


# =============================================================================
# Inbox Commands
# =============================================================================


@app.command()
def inbox(
    delete: str | None = typer.Option(None, "--delete", "-d", help="Delete a notification by URL"),
) -> None:
    """Show the configured agent's sharing notifications."""
    if delete:
        _run(lambda client: InboxManager(client).delete(delete))
        console.print(f"[green]✓[/green] Deleted {delete}")
        return

    try:
        inbox_url = get_inbox_url()
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    notifications = sort_by_published(_run(lambda client: InboxManager(client).list(inbox_url)))

    table = Table(title=f"Inbox ({len(notifications)})")
    table.add_column("Published", style="dim")
    table.add_column("From", style="cyan")
    table.add_column("Resource")
    table.add_column("Modes", style="green")
    table.add_column("Notification", style="dim")
    for n in notifications:
        table.add_row(
            n.published.isoformat() if n.published else "",
            n.actor,
            n.resource_url,
            ", ".join(n.modes),
            n.id,
        )
    console.print(table)


# =============================================================================
# Access Commands
# =============================================================================


@app.command()
def grant(
    resource: str = typer.Argument(..., help="Resource URL"),
    agent: str = typer.Argument(..., help="WebID of the agent"),
    modes: str = typer.Option("Read", "--modes", "-m", help="Comma-separated modes"),
) -> None:
    """Grant an agent access to a resource."""
    parsed = _parse_modes_option(modes)
    _run(lambda client: AccessControlManager(client).grant(resource, agent, parsed))
    console.print(f"[green]✓[/green] Granted {modes} on {resource} to {agent}")


@app.command()
def revoke(
    resource: str = typer.Argument(..., help="Resource URL"),
    agent: str = typer.Argument(..., help="WebID of the agent"),
) -> None:
    """Revoke every grant an agent holds on a resource."""
    _run(lambda client: AccessControlManager(client).revoke(resource, agent))
    console.print(f"[green]✓[/green] Revoked access on {resource} from {agent}")


@app.command()
def access(
    resource: str = typer.Argument(..., help="Resource URL"),
) -> None:
    """Show the rules governing a resource."""
    rules = _run(lambda client: AccessControlManager(client).list_rules(resource))

    table = Table(title="Authorizations")
    table.add_column("Rule", style="dim")
    table.add_column("Agent", style="cyan")
    table.add_column("Modes", style="green")
    for rule in rules:
        table.add_row(
            rule.rule_id,
            rule.agent or f"class: {rule.agent_class}",
            ", ".join(sorted(m.value for m in rule.modes)),
        )
    console.print(table)


@app.command()
def share(
    resource: str = typer.Argument(..., help="Resource URL"),
    recipient: str = typer.Option(..., "--with", "-w", help="Recipient name in the directory"),
    modes: str = typer.Option("Read", "--modes", "-m", help="Comma-separated modes"),
) -> None:
    """Grant a directory agent access and notify them."""
    sender_id = _require_web_id()
    parsed = _parse_modes_option(modes)
    directory_url = get_directory_url()

    result = _run(
        lambda client: SharingService(client).share_by_name(
            resource, recipient, parsed, sender_id, directory_url
        )
    )
    console.print_json(result.model_dump_json())
    if not result.notified:
        console.print("[yellow]Access granted, but the recipient was not notified[/yellow]")


def _parse_modes_option(modes: str) -> list:
    try:
        return parse_modes(modes)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
) -> None:
    """podmesh - Capability sharing between agent pods."""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if version:
        console.print(f"podmesh version {__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print("Use [cyan]podmesh --help[/cyan] for available commands.")


if __name__ == "__main__":
    app()
