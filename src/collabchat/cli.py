"""CLI entry point for collabchat."""

import click
import uvicorn

from .auth import issue_token
from .config import get_jwt_secret
from .core import Identity


@click.group()
def main():
    """Real-time project chat rooms with an inline AI assistant."""
    pass


@main.command()
@click.option("--port", default=3000, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option("--log-level", default="info", help="Log level passed to uvicorn.")
def serve(port: int, host: str, log_level: str):
    """Start the chat server."""
    if not get_jwt_secret():
        click.echo("Warning: COLLABCHAT_JWT_SECRET is not set; every connection will be refused.", err=True)
    click.echo(f"Starting collabchat on ws://{host}:{port}/ws")
    uvicorn.run("collabchat.server:app", host=host, port=port, log_level=log_level, reload=False)


@main.command()
@click.option("--user-id", required=True, help="User id to embed in the token.")
@click.option("--email", default="", help="User email to embed in the token.")
@click.option("--expires-in", default=None, type=int, help="Lifetime in seconds.")
def token(user_id: str, email: str, expires_in: int | None):
    """Print a signed session token for development."""
    secret = get_jwt_secret()
    if not secret:
        raise click.ClickException("COLLABCHAT_JWT_SECRET is not set")
    click.echo(issue_token(Identity(id=user_id, email=email), secret, expires_in=expires_in))
