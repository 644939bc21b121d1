from __future__ import annotations

import asyncio
import json
import logging
from typing import Annotated

import typer
from sqlalchemy import text

from conflictmeter.api import create_app
from conflictmeter.core.config import Settings, get_settings
from conflictmeter.core.logging import configure_logging
from conflictmeter.db.init import init_db
from conflictmeter.db.session import build_engine
from conflictmeter.services.pipeline import build_pipeline

app = typer.Typer(help="Global conflict risk score command-line interface")
LOGGER = logging.getLogger(__name__)


def _build_runtime() -> Settings:
    settings = get_settings()
    configure_logging(settings)
    return settings


@app.command("init-db")
def init_db_command() -> None:
    settings = _build_runtime()
    engine = build_engine(settings)
    tables = init_db(engine)
    typer.echo(f"Initialized database schema: {', '.join(tables)}")


@app.command("healthcheck")
def healthcheck_command() -> None:
    settings = get_settings()
    configure_logging(settings)
    failed = False

    typer.echo(f"[INFO] CACHE_BACKEND={settings.cache_backend} ESTIMATOR={settings.estimator_provider}")

    if settings.cache_backend == "sql":
        engine = build_engine(settings)
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            typer.echo("[OK]  DB connection")
        except Exception as exc:
            typer.echo(f"[FAIL] DB connection ({exc})")
            failed = True

    if settings.feed_urls:
        typer.echo(f"[OK]  {len(settings.feed_urls)} feed URL(s) configured")
    else:
        typer.echo("[FAIL] no feed URLs configured (set FEED_URLS)")
        failed = True

    if settings.estimator_provider == "openai":
        if settings.openai_api_key:
            typer.echo("[OK]  OPENAI_API_KEY configured")
        else:
            typer.echo("[FAIL] missing OPENAI_API_KEY for estimator_provider=openai")
            failed = True
    else:
        typer.echo("[WARN] mock estimator in use (set ESTIMATOR_PROVIDER=openai)")

    if failed:
        raise typer.Exit(code=1)


@app.command("score")
def score_command(
    pretty: Annotated[bool, typer.Option(help="Indent the JSON output")] = False,
) -> None:
    settings = _build_runtime()
    pipeline = build_pipeline(settings)

    result = asyncio.run(pipeline.get_score())
    typer.echo(json.dumps(result.record.to_response(), indent=2 if pretty else None))
    LOGGER.info("Score served status=%d cache=%s", result.status_code, result.cache_status)
    if result.record.is_sentinel:
        raise typer.Exit(code=1)


@app.command("serve")
def serve_command(
    host: Annotated[str, typer.Option(help="Bind address, defaults to API_HOST")] = "",
    port: Annotated[int, typer.Option(min=0, max=65535, help="Port, defaults to API_PORT")] = 0,
) -> None:
    settings = _build_runtime()
    flask_app = create_app(settings)
    flask_app.run(host=host or settings.api_host, port=port or settings.api_port)


if __name__ == "__main__":
    app()
