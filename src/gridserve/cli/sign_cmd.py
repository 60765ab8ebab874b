"""CLI command for issuing capability URLs.

Usage:
    gridserve sign-url read KEY --filename greeting.txt --content-type text/plain
    gridserve sign-url read KEY --filename greeting.txt --public
    gridserve sign-url upload KEY --content-type text/plain --content-length 14 --checksum ...
"""

from __future__ import annotations

import typer

from gridserve.config import settings
from gridserve.observability.logging import LogContext
from gridserve.storage.urls import UrlIssuer

app = typer.Typer(help="Issue signed download and upload URLs", no_args_is_help=True)


def _issuer() -> UrlIssuer:
    from gridserve.security.capability import CapabilitySigner

    if not settings.secret_key:
        typer.echo("GRIDSERVE_SECRET_KEY must be set to issue URLs", err=True)
        raise typer.Exit(code=1)

    return UrlIssuer(
        CapabilitySigner(settings.secret_key),
        base_url=settings.base_url,
        route_prefix=settings.route_prefix,
        public=settings.public_urls,
        default_expires_in=settings.url_expires_in,
    )


@app.command("read")
def sign_read(
    key: str = typer.Argument(..., help="Blob key"),
    filename: str = typer.Option(..., "--filename", "-f", help="Filename offered to the client"),
    content_type: str | None = typer.Option(None, "--content-type", "-t", help="MIME type"),
    disposition: str = typer.Option(
        "inline", "--disposition", "-d", help="inline or attachment"
    ),
    expires_in: int | None = typer.Option(
        None, "--expires-in", "-e", help="Lifetime in seconds (private URLs)"
    ),
    public: bool = typer.Option(False, "--public", help="Issue a non-expiring public URL"),
) -> None:
    """Print a download URL for KEY."""
    from rich.console import Console

    issuer = _issuer()
    with LogContext(request_id="cli-sign-url"):
        if public:
            url = issuer.public_url(
                key, filename=filename, content_type=content_type, disposition=disposition
            )
        else:
            url = issuer.private_url(
                key,
                filename=filename,
                content_type=content_type,
                disposition=disposition,
                expires_in=expires_in,
            )
    Console().print(url, soft_wrap=True, highlight=False)


@app.command("upload")
def sign_upload(
    key: str = typer.Argument(..., help="Blob key"),
    content_type: str = typer.Option(..., "--content-type", "-t", help="MIME type"),
    content_length: int = typer.Option(..., "--content-length", "-l", help="Body size in bytes"),
    checksum: str | None = typer.Option(
        None, "--checksum", "-c", help="Base64-encoded MD5 of the body"
    ),
    expires_in: int | None = typer.Option(None, "--expires-in", "-e", help="Lifetime in seconds"),
) -> None:
    """Print a direct-upload URL and the headers to send with it."""
    from rich.console import Console

    console = Console()
    issuer = _issuer()
    with LogContext(request_id="cli-sign-url"):
        url = issuer.url_for_direct_upload(
            key,
            content_type=content_type,
            content_length=content_length,
            checksum=checksum,
            expires_in=expires_in,
        )
    console.print(url, soft_wrap=True, highlight=False)
    for name, value in issuer.headers_for_direct_upload(key, content_type=content_type).items():
        console.print(f"[bold]{name}:[/bold] {value}", highlight=False)
