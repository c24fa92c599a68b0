from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from crumble.domain.entities.streams import NormalizedStream
from crumble.infrastructure.composition import engine_lifespan
from crumble.infrastructure.config import AppConfig, load_config
from crumble.infrastructure.logging.setup import configure_logging


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    # Config wiring flags (no business logic), shared by every command
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    common.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    common.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    common.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    parser = argparse.ArgumentParser(prog="crumble")
    sub = parser.add_subparsers(dest="command", required=True)

    streams = sub.add_parser(
        "streams", parents=[common], help="Aggregate ranked streams for a title."
    )
    streams.add_argument("media_type", choices=["movie", "series"])
    streams.add_argument("media_id", help="IMDb (tt...) or TMDB (tmdb:N) id.")
    streams.add_argument("--season", type=int, default=None)
    streams.add_argument("--episode", type=int, default=None)
    streams.add_argument("--title", default=None, help="Fallback display title.")
    streams.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Override aggregation.deadline_seconds.",
    )

    sub.add_parser(
        "diagnose", parents=[common], help="Check configured addons and CORS relays."
    )

    return parser.parse_args(argv)


def _stream_to_dict(stream: NormalizedStream) -> dict[str, Any]:
    return {
        "addon_id": stream.source_addon_id,
        "addon": stream.source_addon_name,
        "title": stream.display_title,
        "url": stream.locator.uri,
        "info_hash": stream.locator.info_hash,
        "file_index": stream.locator.file_index,
        "quality": stream.quality.label,
        "size_bytes": stream.size_bytes,
        "seeders": stream.seeders,
        "language": stream.language,
        "source": stream.source_tag,
        "reliability": stream.reliability,
    }


def _dump(data: Any) -> None:
    sys.stdout.write(json.dumps(data, indent=2, ensure_ascii=False) + "\n")


async def _run_streams(config: AppConfig, args: argparse.Namespace) -> int:
    async with engine_lifespan(config) as engine:
        streams = await engine.aggregate.aggregate(
            args.media_type,
            args.media_id,
            season=args.season,
            episode=args.episode,
            title_hint=args.title,
        )
        _dump(
            {
                "count": len(streams),
                "streams": [_stream_to_dict(s) for s in streams],
                "stats": engine.state.snapshot(),
            }
        )
    return 0


async def _run_diagnose(config: AppConfig) -> int:
    async with engine_lifespan(config) as engine:
        report = await engine.diagnostics.run(engine.addon_source.snapshot())
        _dump(report.to_dict())
    return 0 if report.addons and report.unhealthy_addons == 0 else 1


def start(argv: Sequence[str] | None = None) -> int:
    """
    Process entrypoint.

    Load config exactly once here, then build the engine with it.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format
    if getattr(args, "deadline", None) is not None:
        cli_overrides["deadline_seconds"] = args.deadline

    config = load_config(
        config_path=config_path,
        dotenv_path=dotenv_path,
        cli_overrides=cli_overrides,
    )

    configure_logging(config)

    if args.command == "streams":
        return asyncio.run(_run_streams(config, args))
    return asyncio.run(_run_diagnose(config))


if __name__ == "__main__":
    raise SystemExit(start())
