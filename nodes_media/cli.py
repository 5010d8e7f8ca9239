"""
Command line rendering of job files, without the HTTP layer or rate limits.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from nodes_media.config import load_config
from nodes_media.errors import MediaError
from nodes_media.logging_setup import configure_logging
from nodes_media.pipeline import MediaPipeline
from nodes_media.requests_model import parse_job
from nodes_media.templates import TEMPLATES


def render_job(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        payload = json.loads(args.job.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.error("Could not read job file %s: %s", args.job, exc)
        return 1

    if args.format:
        payload["outputFormat"] = args.format

    config = load_config(args.config)
    if args.assets:
        config = dataclasses.replace(
            config,
            service=dataclasses.replace(config.service, assets_dir=args.assets),
        )

    try:
        job = parse_job(payload, config.render)
        media = MediaPipeline(config, logger).render(job)
    except MediaError as exc:
        logger.error("Render failed: %s%s", exc.message, f" ({exc.details})" if exc.details else "")
        return 1

    output = args.output or Path(media.filename)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(media.data)
    for warning in media.warnings:
        logger.warning(warning)
    logger.info("Wrote %s (%s, %s frames, %s bytes)", output, media.mime_type, media.frame_count, len(media.data))
    return 0


def list_templates(_: argparse.Namespace, logger: logging.Logger) -> int:
    for name, spec in sorted(TEMPLATES.items()):
        cycle = f", {spec.fixed_cycle_ms}ms cycle" if spec.fixed_cycle_ms else ""
        logger.info(
            "%s [%s] up to %s images, ratios %s%s",
            name,
            spec.family,
            spec.max_slots,
            "/".join(spec.aspect_ratios),
            cycle,
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Offline renderer for NODES media jobs.")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.json"),
        help="Path to config.json (falls back to environment variables).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser("render", help="Render a JSON job file.")
    render_parser.add_argument("job", type=Path, help="Job file in the /api/render body format.")
    render_parser.add_argument("-o", "--output", type=Path, help="Output path (default: generated filename).")
    render_parser.add_argument(
        "-f",
        "--format",
        choices=("png", "gif", "mp4"),
        help="Override the job's outputFormat.",
    )
    render_parser.add_argument("--assets", type=Path, help="Branding assets directory.")

    subparsers.add_parser("templates", help="List available templates.")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = configure_logging(
        "nodes_media",
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=None,
    )

    if args.command == "render":
        return render_job(args, logger)
    if args.command == "templates":
        return list_templates(args, logger)

    parser.error(f"Unhandled command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
