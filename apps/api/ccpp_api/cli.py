"""CLI commands for the CCPP API."""

import json
from pathlib import Path

import click

from ccpp_api.errors import CoreError
from ccpp_api.settings import get_settings
from ccpp_api.storage.backend import LocalBackend, RemoteBackend, get_backend


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group()
def cli():
    """CCPP logbook and visual provisioning CLI."""
    pass


@cli.command("init-db")
def init_db():
    """Create tables in the local database."""
    from ccpp_api.db.seed import create_schema
    from ccpp_api.db.session import get_engine

    create_schema(get_engine())
    click.echo("✓ Schema created.")


@cli.command()
def seed():
    """Seed plant equipment and the first logbook entry."""
    from ccpp_api.db.seed import seed_all
    from ccpp_api.db.session import get_session_factory

    backend = get_backend()
    if not isinstance(backend, LocalBackend):
        raise click.ClickException("Seeding requires STORAGE_BACKEND=local")

    click.echo("Seeding initial data...")
    db = get_session_factory()()
    try:
        seed_all(db, backend.ledger)
        click.echo("✓ Seed data created.")
    except CoreError as e:
        db.rollback()
        raise click.ClickException(f"Error seeding data: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--type", "entry_type", type=click.Choice(["AUTO", "MANUAL", "DOCUMENT_ADDED"]), default="MANUAL")
@click.option("--source", required=True, help="Operator name or subsystem tag")
@click.option("--equipment", "equipment_id", default=None, help="Equipment external id")
@click.argument("message")
def log(entry_type, source, equipment_id, message):
    """Append an entry to the logbook."""
    try:
        entry = get_backend().append_log_entry(
            {"type": entry_type, "source": source, "message": message, "equipment_id": equipment_id}
        )
    except CoreError as e:
        raise click.ClickException(str(e))
    _echo_json(entry)


@cli.command("verify-ledger")
def verify_ledger():
    """Verify the logbook signature chain."""
    try:
        report = get_backend().verify_ledger()
    except CoreError as e:
        raise click.ClickException(str(e))
    _echo_json(report)
    if not report["valid"]:
        raise SystemExit(1)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def fingerprint(path: Path):
    """Print the perceptual hash of an image."""
    try:
        click.echo(get_backend().fingerprint(path.read_bytes()))
    except CoreError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def identify(path: Path):
    """Identify equipment from a photo."""
    try:
        _echo_json(get_backend().identify(path.read_bytes()))
    except CoreError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.option("--remote-url", default=None, help="Server to pull from (defaults to REMOTE_API_URL)")
def sync(remote_url):
    """Pull missing records from a remote server into the local store."""
    backend = get_backend()
    if not isinstance(backend, LocalBackend):
        raise click.ClickException("Sync requires STORAGE_BACKEND=local")

    settings = get_settings()
    remote = RemoteBackend(remote_url or settings.remote_api_url, timeout=settings.remote_timeout_seconds)
    try:
        result = backend.pull_from(remote)
    except CoreError as e:
        raise click.ClickException(str(e))
    finally:
        remote.close()
    _echo_json(result)
    if not result["verification"]["valid"]:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
