"""Command line interface of the shorts agent."""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Optional

import typer
import uvicorn

from .clients import ClientProfile, add_client, ensure_clients_file, get_client, load_clients
from .config import Settings, get_settings
from .doctor import run_doctor
from .exceptions import ShortsAgentError
from .models import RunRecord
from .observability import setup_logging
from .orchestrator import RunOrchestrator
from .providers.factory import build_provider_resolver
from .scheduler import ClientScheduler
from .storage import JobStore, MetricsStore, RunStore

logger = logging.getLogger(__name__)


class Privacy(str, Enum):
    public = "public"
    unlisted = "unlisted"
    private = "private"


class Tone(str, Enum):
    educational = "educational"
    casual = "casual"
    professional = "professional"


app = typer.Typer(help="Daily shorts production for multiple clients.", no_args_is_help=True)


@app.callback()
def main_callback() -> None:
    """Configure logging before any command runs."""

    setup_logging(get_settings().log_level)


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _load_clients(settings: Settings) -> list[ClientProfile]:
    ensure_clients_file(settings.clients_file)
    return load_clients(settings.clients_file)


def _privacy(value: Optional[Privacy]) -> Optional[str]:
    return value.value if value is not None else None


def _fail(exc: Exception) -> typer.Exit:
    logger.error("%s", exc)
    return typer.Exit(code=1)


@app.command(name="clients")
def list_clients() -> None:
    """List configured clients and their provider bindings."""

    try:
        clients = _load_clients(get_settings())
    except (ShortsAgentError, OSError) as exc:
        raise _fail(exc) from exc
    if not clients:
        typer.echo("No clients found.")
        return
    for client in clients:
        providers = ", ".join((client.voice.provider, client.avatar.provider, client.youtube.provider))
        typer.echo(f"{client.id}\t{client.display_name}\t{client.niche}\t{providers}")


@app.command(name="client-add")
def client_add(
    client_id: str = typer.Option(..., "--id", help="Unique client id."),
    name: str = typer.Option(..., "--name", help="Display name."),
    niche: str = typer.Option(..., "--niche", help="Content niche, e.g. tech or finance."),
    tone: Tone = typer.Option(Tone.educational, "--tone", help="Script tone."),
) -> None:
    """Add a client wired to the stub providers."""

    settings = get_settings()
    try:
        client = add_client(settings.clients_file, client_id, name, niche, tone.value, settings.default_timezone)
    except (ShortsAgentError, OSError) as exc:
        raise _fail(exc) from exc
    typer.echo(f"Added client {client.id} with {len(client.topic_bank)} starter topics.")


@app.command(name="run")
def run(
    client_id: str = typer.Option(..., "--client", help="Client id to run."),
    topic: Optional[str] = typer.Option(None, "--topic", help="Topic override."),
    privacy: Optional[Privacy] = typer.Option(None, "--privacy", help="Privacy override."),
) -> None:
    """Produce and upload one short for a client."""

    settings = get_settings()
    try:
        client = get_client(_load_clients(settings), client_id)
        orchestrator = RunOrchestrator.from_settings(settings)
        registry = build_provider_resolver(settings, orchestrator.job_store)

        async def _run() -> RunRecord:
            try:
                return await orchestrator.run_once(
                    client, registry(client), topic_override=topic, privacy_override=_privacy(privacy)
                )
            finally:
                await registry.aclose()

        record = asyncio.run(_run())
    except (ShortsAgentError, OSError) as exc:
        raise _fail(exc) from exc
    _echo_json({**record.to_json_dict(), "runLogPath": record.run_log_path})


@app.command(name="run-all")
def run_all(
    privacy: Optional[Privacy] = typer.Option(None, "--privacy", help="Privacy override."),
) -> None:
    """Run every client once, in order; a failed client does not stop the rest."""

    settings = get_settings()
    try:
        clients = _load_clients(settings)
    except (ShortsAgentError, OSError) as exc:
        raise _fail(exc) from exc
    orchestrator = RunOrchestrator.from_settings(settings)
    registry = build_provider_resolver(settings, orchestrator.job_store)

    async def _run() -> list[dict[str, Any]]:
        results = []
        try:
            for client in clients:
                try:
                    record = await orchestrator.run_once(client, registry(client), privacy_override=_privacy(privacy))
                    results.append({"clientId": client.id, "status": "completed", "runLogPath": record.run_log_path})
                except ShortsAgentError as exc:
                    logger.error("%s", exc)
                    results.append({"clientId": client.id, "status": "failed", "error": str(exc)})
        finally:
            await registry.aclose()
        return results

    results = asyncio.run(_run())
    _echo_json(results)
    if any(item["status"] == "failed" for item in results):
        raise typer.Exit(code=1)


@app.command(name="schedule")
def schedule() -> None:
    """Run the cron scheduler until interrupted."""

    settings = get_settings()
    try:
        clients = _load_clients(settings)
    except (ShortsAgentError, OSError) as exc:
        raise _fail(exc) from exc
    orchestrator = RunOrchestrator.from_settings(settings)
    registry = build_provider_resolver(settings, orchestrator.job_store)
    scheduler = ClientScheduler(clients, orchestrator, registry)

    async def _serve() -> None:
        try:
            await scheduler.start()
            typer.echo(f"Scheduler started for {len(clients)} clients.")
            try:
                await asyncio.Event().wait()
            finally:
                await scheduler.stop()
        finally:
            await registry.aclose()

    try:
        asyncio.run(_serve())
    except ValueError as exc:
        raise _fail(exc) from exc
    except KeyboardInterrupt:
        typer.echo("Scheduler stopped.")


@app.command(name="jobs")
def jobs(
    client_id: Optional[str] = typer.Option(None, "--client", help="Only jobs of this client."),
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum number of jobs."),
) -> None:
    """List recent render jobs."""

    store = JobStore(get_settings().data_dir)
    _echo_json([job.to_json_dict() for job in store.list_recent(limit, client_id=client_id)])


@app.command(name="job")
def job(job_id: str = typer.Argument(..., help="Render job id.")) -> None:
    """Show one render job."""

    record = JobStore(get_settings().data_dir).get(job_id)
    if record is None:
        logger.error("Render job not found: %s", job_id)
        raise typer.Exit(code=1)
    _echo_json(record.to_json_dict())


@app.command(name="runs")
def runs(
    client_id: str = typer.Option(..., "--client", help="Client id."),
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum number of runs."),
) -> None:
    """List recent runs of a client, newest first."""

    store = RunStore(get_settings().data_dir)
    _echo_json(
        [
            {
                "runId": record.run_id,
                "status": record.status,
                "topic": record.topic,
                "timestamp": record.timestamp.isoformat(),
                "durationMs": record.duration_ms,
                "error": record.error.message if record.error else None,
            }
            for record in store.list_runs(client_id, limit=limit)
        ]
    )


@app.command(name="metrics")
def metrics(limit: int = typer.Option(50, "--limit", min=1, help="Maximum number of events.")) -> None:
    """Show recent metric events, newest first."""

    store = MetricsStore(get_settings().data_dir)
    _echo_json([event.to_json_dict() for event in store.read_metrics(limit)])


@app.command(name="doctor")
def doctor(client_id: Optional[str] = typer.Option(None, "--client", help="Check only this client.")) -> None:
    """Check the clients file and the credentials the configured providers need."""

    settings = get_settings()
    result = run_doctor(settings, settings.clients_file, client_id)
    _echo_json(result.model_dump())
    if not result.ok:
        raise typer.Exit(code=1)


@app.command(name="serve")
def serve(
    port: Optional[int] = typer.Option(None, "--port", help="Listen port (defaults to APP_PORT)."),
    host: str = typer.Option("0.0.0.0", "--host", help="Listen address."),
) -> None:  # pragma: no cover - starts a server
    """Start the webhook receiver."""

    settings = get_settings()
    uvicorn.run(
        "shorts_agent.webhooks:create_app",
        factory=True,
        host=host,
        port=port or settings.app_port,
        log_level=settings.log_level,
    )


def main() -> None:
    """Console entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover - manual run
    main()
