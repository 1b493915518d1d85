"""Main CLI entry point for guano-inspector.

This module provides a command-line interface using Typer on top of the
pipeline:

1.  `list` shows uploaded files, newest first.
2.  `inspect NAME` locates and decodes the GUANO block of a recording (or
    reads a text file whole) and prints the result payload as JSON.
3.  `delete NAME` removes an uploaded file.
4.  `sign NAME` mints a signed read/write URL.

Configuration comes from the environment / `.env` (see `config.Settings`);
command options override individual settings for one run.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import typer
from dotenv import find_dotenv, load_dotenv

from .config import Settings, get_settings
from .errors import ExtractorError, StorageError
from .extractor import build_extractor
from .pipeline import delete_file, inspect_file, list_files, signed_url
from .storage import build_store

app = typer.Typer(help="Inspect uploaded field recordings for embedded GUANO metadata")

logger = logging.getLogger(__name__)


def _load_settings() -> Settings:
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    if env_file:
        logger.debug("Loaded environment from %s", env_file)
    return settings


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


@app.callback()
def main() -> None:  # pragma: no cover - simple callback
    """guano-inspector CLI.

    Use a subcommand like 'inspect' to process a file.
    """
    pass


@app.command("list", help="List uploaded files, newest first.")
def list_command() -> None:
    settings = _load_settings()

    async def _run() -> list[dict[str, Any]]:
        async with build_store(settings) as store:
            files = await list_files(store, settings)
        return [f.model_dump(mode="json", by_alias=True) for f in files]

    try:
        payload = asyncio.run(_run())
    except StorageError as e:
        _echo_json({"error": f"Failed to list files: {e}"})
        raise typer.Exit(code=1)
    _echo_json(payload)


@app.command(help="Locate and decode embedded metadata in an uploaded file.")
def inspect(
    name: str = typer.Argument(..., help="Uploaded file name (no directories)"),
    window_bytes: Optional[int] = typer.Option(
        None, min=1, help="Override WINDOW_BYTES (trailing bytes fetched for binary files)"
    ),
    extract: bool = typer.Option(
        True,
        "--extract/--no-extract",
        help="Run the structured-data extractor (disabled when ENABLE_EXTRACTION=false).",
    ),
) -> None:
    settings = _load_settings()
    if window_bytes is not None:
        settings = settings.model_copy(update={"WINDOW_BYTES": window_bytes})

    try:
        extractor = build_extractor(settings) if extract else None
    except ExtractorError as e:
        logger.warning("extractor unavailable; continuing without it: %s", e)
        extractor = None

    async def _run() -> dict[str, Any]:
        async with build_store(settings) as store:
            return await inspect_file(name, store=store, settings=settings, extractor=extractor)

    try:
        payload = asyncio.run(_run())
    except StorageError as e:
        payload = {"error": f"Failed to read file {name}: {e}"}
    _echo_json(payload)
    if "error" in payload:
        raise typer.Exit(code=1)


@app.command(help="Delete an uploaded file.")
def delete(name: str = typer.Argument(..., help="Uploaded file name (no directories)")) -> None:
    settings = _load_settings()

    async def _run() -> dict[str, Any]:
        async with build_store(settings) as store:
            return await delete_file(name, store=store, settings=settings)

    try:
        payload = asyncio.run(_run())
    except StorageError as e:
        payload = {"error": f"Failed to delete file: {e}"}
    _echo_json(payload)
    if "error" in payload:
        raise typer.Exit(code=1)


@app.command(help="Mint a signed URL for an uploaded file.")
def sign(
    name: str = typer.Argument(..., help="Uploaded file name (no directories)"),
    mode: str = typer.Option("read", help="URL mode: read or write"),
    ttl: Optional[int] = typer.Option(
        None, min=1, help="Lifetime in seconds (defaults to SIGNED_URL_TTL_SECONDS)"
    ),
) -> None:
    settings = _load_settings()

    async def _run() -> str:
        async with build_store(settings) as store:
            return await signed_url(name, store=store, settings=settings, mode=mode, ttl=ttl)

    try:
        url = asyncio.run(_run())
    except (StorageError, ValueError) as e:
        _echo_json({"error": f"Failed to sign URL: {e}"})
        raise typer.Exit(code=1)
    _echo_json({"url": url})


if __name__ == "__main__":  # pragma: no cover
    app()
