"""Flask application exposing the render pipeline over HTTP."""

from __future__ import annotations

import logging
from typing import Optional

import requests
from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from nodes_media.config import Config
from nodes_media.errors import CapacityError, InvalidRequestError, MediaError, UpstreamError
from nodes_media.pipeline import MediaPipeline, rate_bucket
from nodes_media.requests_model import parse_job
from nodes_media.resource_guard import ResourceGuard
from nodes_media.scheduler import start_housekeeping

PROXY_BUCKET = "proxy"


def client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return request.remote_addr or "unknown"


def error_response(error: MediaError) -> Response:
    response = jsonify(error.to_payload())
    response.status_code = error.status_code
    if isinstance(error, CapacityError):
        response.headers["Retry-After"] = str(error.retry_after_seconds)
    return response


def create_app(
    config: Optional[Config] = None,
    *,
    logger: Optional[logging.Logger] = None,
    pipeline: Optional[MediaPipeline] = None,
    guard: Optional[ResourceGuard] = None,
    start_scheduler: bool = False,
) -> Flask:
    """Build the Flask app; collaborators may be injected for tests."""
    config = config or Config()
    logger = logger or logging.getLogger("nodes_media")
    pipeline = pipeline or MediaPipeline(config, logger)
    guard = guard or ResourceGuard.from_settings(config.guard, logger=logger)

    app = Flask(__name__)
    app.config["PIPELINE"] = pipeline
    app.config["GUARD"] = guard
    if start_scheduler:
        app.config["SCHEDULER"] = start_housekeeping(guard, config.guard.sweep_interval_minutes, logger)

    @app.errorhandler(MediaError)
    def handle_media_error(error: MediaError):
        if error.status_code >= 500:
            logger.error("%s: %s (%s)", type(error).__name__, error.message, error.details)
        return error_response(error)

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description}), error.code
        logger.exception("Unhandled error: %s", error)
        return error_response(MediaError("Internal server error", details=str(error)))

    @app.post("/api/render")
    def render():
        job = parse_job(request.get_json(silent=True), config.render)
        ip = client_ip()
        with guard.admit(ip, rate_bucket(job), heavy=job.is_animated_output):
            media = pipeline.render(job)

        response = Response(media.data, mimetype=media.mime_type)
        response.headers["Content-Disposition"] = f'attachment; filename="{media.filename}"'
        response.headers["X-Frame-Count"] = str(media.frame_count)
        if media.warnings:
            response.headers["X-Render-Warnings"] = str(len(media.warnings))
        return response

    @app.get("/api/proxy-gif")
    def proxy_gif():
        url = request.args.get("url", "").strip()
        if not url:
            raise InvalidRequestError("URL required")
        with guard.admit(client_ip(), PROXY_BUCKET):
            try:
                upstream = pipeline.fetcher.fetch_response(url)
            except requests.RequestException as exc:
                raise UpstreamError("Failed to fetch GIF", details=str(exc)) from exc

        response = Response(upstream.content, mimetype=upstream.headers.get("Content-Type", "image/gif"))
        response.headers["Cache-Control"] = "public, max-age=86400"
        return response

    @app.get("/api/metadata/<token_id>")
    def metadata(token_id: str):
        token = pipeline.metadata.fetch(token_id)
        response = jsonify(token.raw)
        response.headers["Cache-Control"] = "public, s-maxage=60, stale-while-revalidate=300"
        return response

    @app.get("/api/resolve-legacy-image")
    def resolve_legacy_image():
        legacy = pipeline.metadata.resolve_legacy_image(request.args.get("tokenId"))
        return jsonify(legacy.to_payload())

    @app.get("/healthz")
    def healthz():
        return jsonify(
            {
                "status": "ok",
                "activeHeavyJobs": guard.concurrency.active,
                "maxHeavyJobs": guard.concurrency.max_concurrent,
            }
        )

    return app


__all__ = ["client_ip", "create_app", "error_response"]
