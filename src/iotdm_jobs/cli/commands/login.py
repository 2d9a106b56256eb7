from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from ...core.credentials import save_credentials

console = Console()


def login_command(token: Optional[str] = None, hub_url: Optional[str] = None):
    """Save a hub API token, and optionally the hub URL, to the credentials file."""
    if not token:
        token = typer.prompt("Hub API token", hide_input=True)
    token = token.strip()
    if not token:
        console.print("[red]error:[/red] token must not be empty")
        raise typer.Exit(code=1)

    if hub_url is not None:
        hub_url = hub_url.strip().rstrip("/")
        if not hub_url.startswith(("http://", "https://")):
            console.print("[red]error:[/red] hub URL must start with http:// or https://")
            raise typer.Exit(code=1)

    path = save_credentials(api_token=token, hub_url=hub_url)
    saved = "token and hub URL saved" if hub_url else "token saved"
    console.print(
        Panel(
            f"[green]{saved}[/green]\ncredentials saved to {path}",
            title="iotdm login",
            expand=False,
        )
    )
