"""Typer Admin CLI: run the server, migrate the database, inspect and create ratings."""

import mimetypes
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from src.ai.factory import get_tree_critic
from src.core.config import get_config
from src.core.errors import TreeRaterError
from src.core.logging import setup_logging
from src.core.storage import LocalBlobStore
from src.repository.rating_repo import LEADERBOARD_SIZE, RatingRepository
from src.services.rating_service import TreeRatingService

app = typer.Typer(no_args_is_help=True)
db_app = typer.Typer(help="Database schema management.")
app.add_typer(db_app, name="db")


def _get_session_factory():
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    cfg = get_config()
    engine = create_engine(cfg.database_url, pool_pre_ping=True)
    return sessionmaker(engine, autocommit=False, autoflush=False, expire_on_commit=False)


def _build_service(critic_name: str | None = None) -> TreeRatingService:
    cfg = get_config()
    return TreeRatingService(
        blob_store=LocalBlobStore(cfg.data_dir, cfg.public_base_url),
        critic=get_tree_critic(critic_name or cfg.critic, cfg),
        rating_repo=RatingRepository(_get_session_factory()),
        max_upload_bytes=cfg.max_upload_bytes,
    )


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
    port: int | None = typer.Option(None, "--port", help="Port (default: PORT / config)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    cfg = get_config()
    setup_logging()
    bind_port = port or cfg.port
    typer.echo(f"Server running in {cfg.app_env} mode on port {bind_port}")
    uvicorn.run("src.api.main:app", host=host, port=bind_port, reload=reload, log_config=None)


@db_app.command("upgrade")
def db_upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
) -> None:
    """Apply Alembic migrations up to revision."""
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("script_location", "migrations")
    command.upgrade(alembic_cfg, revision)
    typer.echo(f"Database upgraded to {revision}.")


@app.command("top")
def top(
    limit: int = typer.Option(LEADERBOARD_SIZE, "--limit", min=1, help="Number of trees to show"),
) -> None:
    """Print the leaderboard (Rank | Id | Aesthetics | Originality | Score | Created)."""
    repo = RatingRepository(_get_session_factory())
    try:
        records = repo.list_top(limit)
        total = repo.count()
    except TreeRaterError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(1)
    if not records:
        typer.echo("No rated trees yet.")
        return
    table = Table(title=None)
    table.add_column("Rank", justify="right")
    table.add_column("Id", justify="right")
    table.add_column("Aesthetics", justify="right")
    table.add_column("Originality", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Created")
    for rank, record in enumerate(records, start=1):
        table.add_row(
            str(rank),
            str(record.id),
            f"{record.aesthetics_score or 0:g}",
            f"{record.originality_score or 0:g}",
            f"{record.total_score:g}",
            str(record.created_at) if record.created_at else "",
        )
    console = Console()
    console.print(table)
    typer.echo(f"Showing {len(records)} of {total} rated trees.")


@app.command("rate")
def rate(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Image file to rate"),
    critic: str | None = typer.Option(None, "--critic", help="Critic to use (mock, openai); default from config"),
) -> None:
    """Run the full upload pipeline on a local image and print the rating."""
    setup_logging()
    service = _build_service(critic)
    content_type = mimetypes.guess_type(path.name)[0]
    try:
        result = service.submit(path.read_bytes(), content_type, path.name)
    except TreeRaterError as e:
        typer.secho(f"Rating failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(1)

    rating = result.rating
    typer.echo(f"Stored as {result.image_url} (id={result.record_id})")
    table = Table(title=None, show_header=False)
    table.add_row("Aesthetics", f"{rating.aesthetics.score:g}", rating.aesthetics.explanation)
    table.add_row("Originality", f"{rating.originality.score:g}", rating.originality.explanation)
    table.add_row("Great feature", "", rating.great_features)
    for i, item in enumerate(rating.improvements, start=1):
        table.add_row(f"Improvement {i}", "", item)
    console = Console()
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
