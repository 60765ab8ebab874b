"""CLI command for running the blob server.

Usage:
    gridserve serve
    gridserve serve --port 9000 --host 127.0.0.1
    gridserve serve --reload --log-level debug
"""

from __future__ import annotations

import typer

from gridserve.config import settings

app = typer.Typer(help="Run the gridserve HTTP server")


@app.callback(invoke_without_command=True)
def serve(
    host: str = typer.Option(settings.host, "--host", "-h", help="Interface to bind"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Restart on code changes"),
    workers: int = typer.Option(1, "--workers", "-w", help="Worker processes"),
    log_level: str = typer.Option(
        settings.log_level, "--log-level", "-l", help="debug, info, warning or error"
    ),
) -> None:
    """Serve blob downloads and direct uploads under the configured route prefix."""
    import uvicorn

    if reload and workers > 1:
        typer.echo("--reload runs a single worker; ignoring --workers", err=True)
        workers = 1

    typer.echo(
        f"gridserve on http://{host}:{port}{settings.route_prefix} "
        f"(backend={settings.storage_backend}, workers={workers})"
    )

    # The factory builds the app (and its storage engine) inside each worker
    uvicorn.run(
        "gridserve.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=log_level.lower(),
    )
