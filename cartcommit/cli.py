"""CLI for the cart commit service."""
import asyncio
import json
import secrets
import sys

import click

from cartcommit.settings import settings


@click.group()
def cli():
    """Cart commit service CLI."""
    pass


@cli.command("generate-key")
def generate_key():
    """Print a fresh CART_ENCRYPTION_KEY (64 hex chars)."""
    click.echo(secrets.token_hex(32))


@cli.command("digest")
@click.argument("json_file", type=click.File("r"))
def digest(json_file):
    """Print the integrity digest of a JSON document."""
    from cartcommit.domain.security.integrity import IntegrityHasher

    try:
        data = json.load(json_file)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid JSON: {e}", err=True)
        sys.exit(1)

    click.echo(IntegrityHasher().digest(data))


@cli.command("check-external")
def check_external():
    """Probe the external shopping mall health endpoint."""
    from cartcommit.adapters.checkout.client import create_checkout_client
    from cartcommit.errors import ConfigurationError

    try:
        client = create_checkout_client(settings)
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    if asyncio.run(client.health_check()):
        click.echo("✓ External API reachable")
    else:
        click.echo("✗ External API unreachable", err=True)
        sys.exit(1)


@cli.command("retry")
@click.argument("audit_id")
@click.option("--user", "user_id", required=True, help="Owning user ID")
def retry(audit_id: str, user_id: str):
    """Replay the stored request of a failed purchase verbatim."""
    from cartcommit.adapters.checkout.client import create_checkout_client
    from cartcommit.adapters.postgres.stores import PostgresDesignStore, PostgresPurchaseAuditStore
    from cartcommit.dependencies import get_reverifier, get_session_factory
    from cartcommit.domain.cart.orchestrator import CartCommitOrchestrator
    from cartcommit.domain.security.manager import SecurityManager

    db = get_session_factory()()
    try:
        designs = PostgresDesignStore(db)
        orchestrator = CartCommitOrchestrator(
            checkout=create_checkout_client(settings),
            designs=designs,
            statuses=designs,
            audit_store=PostgresPurchaseAuditStore(db),
            security=SecurityManager.from_settings(settings),
            reverifier=get_reverifier(),
        )
        outcome = asyncio.run(orchestrator.retry_verbatim(audit_id, user_id))
    finally:
        db.close()

    click.echo(json.dumps(outcome.to_response(), indent=2, ensure_ascii=False))
    if not outcome.success:
        sys.exit(1)


if __name__ == "__main__":
    cli()
