"""Download queue routes (/api/download)."""

import json
import queue

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

from ..events import (
    DOWNLOAD_COMPLETE,
    DOWNLOAD_ERROR,
    DOWNLOAD_START,
    LOG,
    QUEUE_CLEARED,
    QUEUE_COMPLETE,
    QUEUE_START,
    QUEUED,
)
from ..exceptions import AniFinError
from ..models import DownloadOptions

downloads_bp = Blueprint("downloads", __name__, url_prefix="/api/download")

_STREAM_TOPICS = (
    QUEUED,
    QUEUE_START,
    DOWNLOAD_START,
    DOWNLOAD_COMPLETE,
    DOWNLOAD_ERROR,
    QUEUE_COMPLETE,
    QUEUE_CLEARED,
    LOG,
)
# Seconds between keep-alive comments on an idle stream
_KEEPALIVE_SECONDS = 15


def _manager():
    return current_app.config["manager"]


@downloads_bp.route("/", methods=["POST"])
def api_enqueue():
    """Add a URL to the download queue."""
    data = request.get_json(silent=True)
    if not data or not data.get("url"):
        return jsonify({"success": False, "error": "URL is required"}), 400

    options = DownloadOptions.from_dict({k: v for k, v in data.items() if k != "url"})
    try:
        _manager().enqueue(data["url"], options)
    except AniFinError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    return (
        jsonify(
            {
                "success": True,
                "message": "Added to queue",
                "status": _manager().status().to_dict(),
            }
        ),
        202,
    )


@downloads_bp.route("/queue")
def api_queue_status():
    return jsonify({"success": True, "data": _manager().status().to_dict()})


@downloads_bp.route("/queue", methods=["DELETE"])
def api_clear_queue():
    removed = _manager().clear()
    return jsonify({"success": True, "message": "Queue cleared", "removed": removed})


@downloads_bp.route("/current", methods=["DELETE"])
def api_cancel_current():
    """Terminate the download that is currently running."""
    if _manager().cancel_current():
        return jsonify({"success": True, "message": "Current download terminated"})
    return jsonify({"success": False, "error": "Nothing to cancel"}), 409


@downloads_bp.route("/logs")
def api_logs():
    return jsonify({"success": True, "data": _manager().get_all_logs()})


@downloads_bp.route("/info")
def api_video_info():
    """Resolve title and preview image for an episode URL."""
    url = request.args.get("url", "")
    if not url:
        return jsonify({"success": False, "error": "url parameter required"}), 400

    manager = _manager()
    downloader = manager.get_downloader(request.args.get("downloader") or manager.default_downloader)
    if downloader is None:
        return jsonify({"success": False, "error": "No downloader registered"}), 404

    try:
        info = downloader.get_video_info(
            url,
            request.args.get("provider") or None,
            request.args.get("language") or None,
        )
    except AniFinError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    return jsonify({"success": True, "data": info.to_dict()})


@downloads_bp.route("/stream")
def api_stream():
    """Server-Sent Events feed of queue and log events."""
    manager = _manager()
    events: "queue.Queue" = queue.Queue()
    handlers = {}

    for topic in _STREAM_TOPICS:

        def _handler(data, _topic=topic):
            events.put((_topic, data))

        handlers[topic] = _handler
        manager.on(topic, _handler)

    def generate():
        try:
            yield _sse("status", manager.status().to_dict())
            while True:
                try:
                    topic, data = events.get(timeout=_KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield _sse(topic, data)
        finally:
            for topic, handler in handlers.items():
                manager.off(topic, handler)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def _sse(event_type: str, data) -> str:
    return f"data: {json.dumps({'type': event_type, 'data': data}, default=str)}\n\n"
