"""Main CLI entry point for the iotdm CLI."""

import typer
from importlib import metadata
from rich.console import Console

POLL_INTERVAL_HELP = "Seconds between status polls (default: IOTDM_POLL_INTERVAL)"
DEADLINE_HELP = "Seconds to wait for completion (default: IOTDM_DEADLINE)"


def get_version() -> str:
    """Get the package version from metadata."""
    try:
        return metadata.version("iotdm-jobs")
    except metadata.PackageNotFoundError:
        return "unknown"


console = Console()

# command: iotdm
app = typer.Typer(
    name="iotdm",
    help="Schedule device-management jobs on an IoT hub and track them to completion",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# command: iotdm <command>


# Values such as "-10:00" are arguments, not options
@app.command("write", context_settings={"ignore_unknown_options": True})
def write_cmd(
    device_id: str = typer.Argument(..., help="Target device id"),
    property_name: str = typer.Argument(..., help="Device property to write"),
    value: str = typer.Argument(..., help="Value to write"),
    poll_interval: float = typer.Option(None, "--poll-interval", "-i", help=POLL_INTERVAL_HELP),
    deadline: float = typer.Option(None, "--deadline", "-d", help=DEADLINE_HELP),
):
    """Write a device property and wait for the job to complete."""
    from .commands.jobs import write_command
    return write_command(device_id, property_name, value, poll_interval, deadline)


@app.command("read")
def read_cmd(
    device_id: str = typer.Argument(..., help="Target device id"),
    property_name: str = typer.Argument(..., help="Device property to read"),
    poll_interval: float = typer.Option(None, "--poll-interval", "-i", help=POLL_INTERVAL_HELP),
    deadline: float = typer.Option(None, "--deadline", "-d", help=DEADLINE_HELP),
):
    """Read a device property into the device twin."""
    from .commands.jobs import read_command
    return read_command(device_id, property_name, poll_interval, deadline)


@app.command("reboot")
def reboot_cmd(
    device_id: str = typer.Argument(..., help="Target device id"),
    poll_interval: float = typer.Option(None, "--poll-interval", "-i", help=POLL_INTERVAL_HELP),
    deadline: float = typer.Option(None, "--deadline", "-d", help=DEADLINE_HELP),
):
    """Reboot a device."""
    from .commands.jobs import reboot_command
    return reboot_command(device_id, poll_interval, deadline)


@app.command("factory-reset")
def factory_reset_cmd(
    device_id: str = typer.Argument(..., help="Target device id"),
    poll_interval: float = typer.Option(None, "--poll-interval", "-i", help=POLL_INTERVAL_HELP),
    deadline: float = typer.Option(None, "--deadline", "-d", help=DEADLINE_HELP),
):
    """Factory reset a device."""
    from .commands.jobs import factory_reset_command
    return factory_reset_command(device_id, poll_interval, deadline)


@app.command("firmware-update")
def firmware_update_cmd(
    device_id: str = typer.Argument(..., help="Target device id"),
    package_uri: str = typer.Argument(..., help="Firmware package URI"),
    timeout_minutes: int = typer.Option(60, "--timeout-minutes", help="Device-side update timeout"),
    poll_interval: float = typer.Option(None, "--poll-interval", "-i", help=POLL_INTERVAL_HELP),
    deadline: float = typer.Option(None, "--deadline", "-d", help=DEADLINE_HELP),
):
    """Push a firmware update to a device."""
    from .commands.jobs import firmware_update_command
    return firmware_update_command(device_id, package_uri, timeout_minutes, poll_interval, deadline)


@app.command("status")
def status_cmd(job_id: str = typer.Argument(..., help="Job id")):
    """Show the current status of a job."""
    from .commands.jobs import status_command
    return status_command(job_id)


@app.command("login")
def login_cmd(
    token: str = typer.Option(None, "--token", help="Token to save (prompted if omitted)"),
    hub_url: str = typer.Option(None, "--hub-url", help="Hub base URL to use by default"),
):
    """Save a hub API token (and hub URL) for later commands."""
    from .commands.login import login_command
    return login_command(token, hub_url)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
):
    """iotdm CLI - device-management jobs for IoT hubs."""
    if version:
        console.print(f"iotdm CLI v{get_version()}")
        raise typer.Exit()


if __name__ == "__main__":
    app()
