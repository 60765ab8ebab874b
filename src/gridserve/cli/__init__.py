"""CLI commands for gridserve.

Provides command-line interface using Typer:
- gridserve serve: Run the API server
- gridserve sign-url: Issue a download or direct-upload URL for a key
- gridserve generate-secret: Print a fresh capability signing key

Usage:
    gridserve --help
    gridserve serve --port 8080
    gridserve sign-url read abc123 --filename report.pdf --content-type application/pdf
    gridserve sign-url upload abc123 --content-type text/plain --content-length 14 \
        --checksum "Kn3XdgqTvVDq5h/bdXvjvQ=="
"""

import typer

from gridserve.cli.serve import app as serve_app
from gridserve.cli.sign_cmd import app as sign_app
from gridserve.security.capability import generate_secret_key

# Main CLI application
app = typer.Typer(
    name="gridserve",
    help="gridserve: capability-scoped blob storage over HTTP",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")
app.add_typer(sign_app, name="sign-url")


@app.command("generate-secret")
def generate_secret(
    length: int = typer.Option(32, "--length", "-n", help="Key length in bytes"),
) -> None:
    """Print a new random secret for GRIDSERVE_SECRET_KEY."""
    typer.echo(generate_secret_key(length))


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
