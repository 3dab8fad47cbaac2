from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from streamhop.domain.entities.resolution import ResolutionRequest
from streamhop.domain.providers import AggregateResolutionError
from streamhop.infrastructure.config import AppConfig, load_config
from streamhop.infrastructure.logging.setup import configure_logging, uvicorn_log_config
from streamhop.interfaces.app import create_app
from streamhop.interfaces.composition import (
    build_http_client,
    build_orchestrator,
    build_registry,
)
from streamhop.interfaces.presenter import format_health, format_result

log = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_NO_STREAM = 1
EXIT_USAGE = 2


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    # Config wiring flags (no business logic)
    parser.add_argument("--config", default=None, help="Path to YAML config file.")
    parser.add_argument("--dotenv", default=None, help="Path to .env file.")
    parser.add_argument(
        "--provider-dir",
        default=None,
        help="Override provider descriptor directory.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="streamhop")
    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="Resolve one content id and print JSON.")
    resolve.add_argument("content_id", help="Content identifier (e.g. TMDB id).")
    resolve.add_argument("--season", type=int, default=None)
    resolve.add_argument("--episode", type=int, default=None)
    _add_common_flags(resolve)

    providers = sub.add_parser("providers", help="List providers and their health.")
    _add_common_flags(providers)

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=None, help="Bind host (overrides HOST env).")
    serve.add_argument(
        "--port", default=None, type=int, help="Bind port (overrides PORT env)."
    )
    _add_common_flags(serve)

    return parser.parse_args(list(argv) if argv is not None else None)


def _load(args: argparse.Namespace) -> AppConfig:
    cli_overrides: dict[str, Any] = {}
    if args.provider_dir:
        cli_overrides["provider_dir"] = args.provider_dir
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format

    return load_config(
        config_path=Path(args.config) if args.config else None,
        dotenv_path=Path(args.dotenv) if args.dotenv else None,
        cli_overrides=cli_overrides,
    )


def _print_json(data: Any) -> None:
    sys.stdout.write(json.dumps(data, indent=2) + "\n")
    sys.stdout.flush()


def _request_from_args(args: argparse.Namespace) -> ResolutionRequest:
    episodic = args.season is not None or args.episode is not None
    return ResolutionRequest(
        content_id=args.content_id,
        media_type="episode" if episodic else "movie",
        season=args.season,
        episode=args.episode,
    )


async def _resolve(config: AppConfig, request: ResolutionRequest) -> int:
    http_client = build_http_client(config)
    try:
        orchestrator = build_orchestrator(
            config, http_client=http_client, registry=build_registry(config)
        )
        try:
            result = await orchestrator.resolve(request)
        except AggregateResolutionError as e:
            _print_json({"error": "no_stream_found", "providers": e.provider_keys})
            return EXIT_NO_STREAM
        _print_json(format_result(result))
        return EXIT_OK
    finally:
        await http_client.aclose()


def _providers(config: AppConfig) -> int:
    registry = build_registry(config)
    _print_json([format_health(h) for h in registry.health()])
    return EXIT_OK


def _serve(config: AppConfig, args: argparse.Namespace) -> int:
    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = int(args.port or os.getenv("PORT", "7979"))
    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_config=uvicorn_log_config(config),
    )
    return EXIT_OK


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Loads config exactly once, configures logging, then dispatches to the
    selected subcommand.
    """
    args = _parse_args(argv)
    config = _load(args)
    configure_logging(config)

    if args.command == "resolve":
        try:
            request = _request_from_args(args)
        except ValueError as e:
            log.error("invalid_request", error=str(e))
            return EXIT_USAGE
        return asyncio.run(_resolve(config, request))
    if args.command == "providers":
        return _providers(config)
    return _serve(config, args)


if __name__ == "__main__":
    raise SystemExit(start())
