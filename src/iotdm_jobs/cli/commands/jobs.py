"""Job commands: schedule device-management jobs and track them to completion."""

import asyncio
from datetime import timedelta
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...config import Settings, get_settings, validate_polling
from ...exceptions import HubCredentialsError, TrackerError
from ...hub import HubJobClient
from ...models import (
    FactoryReset,
    FirmwareUpdate,
    JobPayload,
    JobRequest,
    JobStatus,
    PropertyRead,
    PropertyWrite,
    Reboot,
)
from ...core.utils.rich_ui import format_status
from ...tracker import JobCompletionTracker

console = Console()


def build_service(settings: Settings):
    """Create the hub client used by every job command."""
    return HubJobClient.from_config(settings.hub)


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ValueError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1)


def _open_service(settings: Settings):
    try:
        return build_service(settings)
    except (HubCredentialsError, ValueError) as e:
        console.print(f"[red]Cannot reach the hub:[/red] {e}")
        raise typer.Exit(1)


async def _track(
    service,
    settings: Settings,
    request: JobRequest,
    poll_interval: float,
    deadline: float,
) -> JobStatus:
    try:
        tracker = JobCompletionTracker.from_settings(service, settings)
        with console.status(f"Waiting for {request.operation} job {request.job_id}..."):
            return await tracker.await_job_completion(
                request, poll_interval=poll_interval, deadline=deadline
            )
    finally:
        await service.close()


def run_job_command(
    device_id: str,
    payload: JobPayload,
    poll_interval: Optional[float] = None,
    deadline: Optional[float] = None,
    job_id: Optional[str] = None,
) -> None:
    """Schedule ``payload`` on ``device_id`` and print the outcome."""
    settings = _load_settings()
    poll_interval = poll_interval or settings.polling.poll_interval
    deadline = deadline or settings.polling.deadline
    try:
        validate_polling(poll_interval, deadline)
    except ValueError as e:
        console.print(f"[red]Invalid polling options:[/red] {e}")
        raise typer.Exit(1)

    request = JobRequest.create(device_id, payload, job_id=job_id)
    service = _open_service(settings)

    try:
        status = asyncio.run(_track(service, settings, request, poll_interval, deadline))
    except TrackerError as e:
        console.print(
            Panel(
                _result_table(request, e.last_status, e.elapsed, error=e.reason),
                title="❌ Job Failed",
                border_style="red",
            )
        )
        raise typer.Exit(1)

    console.print(
        Panel(
            _result_table(request, status),
            title="✅ Job Completed",
            border_style="green",
        )
    )


def _result_table(
    request: JobRequest,
    status: Optional[JobStatus],
    elapsed: Optional[float] = None,
    error: Optional[str] = None,
) -> Table:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Job", request.job_id)
    table.add_row("Device", request.target_id)
    table.add_row("Operation", request.operation)
    table.add_row("Status", format_status(status) if status else "unknown")
    if elapsed is not None:
        table.add_row("Elapsed", f"{elapsed:.1f}s")
    if error:
        table.add_row("Error", error)
    return table


def write_command(
    device_id: str, property_name: str, value: str, poll_interval, deadline
):
    run_job_command(
        device_id,
        PropertyWrite(property_name=property_name, value=value),
        poll_interval,
        deadline,
    )


def read_command(device_id: str, property_name: str, poll_interval, deadline):
    run_job_command(device_id, PropertyRead(property_name=property_name), poll_interval, deadline)


def reboot_command(device_id: str, poll_interval, deadline):
    run_job_command(device_id, Reboot(), poll_interval, deadline)


def factory_reset_command(device_id: str, poll_interval, deadline):
    run_job_command(device_id, FactoryReset(), poll_interval, deadline)


def firmware_update_command(
    device_id: str, package_uri: str, timeout_minutes: int, poll_interval, deadline
):
    payload = FirmwareUpdate(
        package_uri=package_uri, timeout=timedelta(minutes=timeout_minutes)
    )
    run_job_command(device_id, payload, poll_interval, deadline)


def status_command(job_id: str):
    """Print the current status of a job without waiting."""
    settings = _load_settings()
    service = _open_service(settings)

    async def _query() -> JobStatus:
        try:
            return await service.get_status(job_id)
        finally:
            await service.close()

    try:
        status = asyncio.run(_query())
    except TrackerError as e:
        console.print(f"[red]Status query failed:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"Job {job_id}: ", format_status(status))
