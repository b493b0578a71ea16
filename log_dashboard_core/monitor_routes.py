"""Monitor API routes — Flask Blueprint over the MonitorService.

Endpoints:
    GET  /api/state             — Full current state snapshot
    GET  /api/stream            — SSE stream of state snapshots (first frame immediately)
    POST /api/open-folder       — Reveal a saved image's folder (path inside allowed base only)
    GET  /api/monitor/status    — Component status (watcher, cursor, subscribers, probes)
    GET  /api/test              — Liveness echo
"""

import json
import time
from queue import Empty

from flask import Blueprint, current_app, jsonify, request, Response

from .actions import FolderAccessError, FolderActionError

monitor_bp = Blueprint("monitor", __name__)


def _get_service():
    """Resolve the MonitorService stored on the app.

    Returns (service, None) on success, or (None, error_response) on failure.
    """
    service = current_app.config.get("MONITOR_SERVICE")
    if service is None:
        return None, (jsonify({"error": "Monitor service not configured"}), 503)
    return service, None


# ── State ─────────────────────────────────────────────────────

@monitor_bp.route("/api/state")
def api_state():
    service, err = _get_service()
    if err:
        return err
    return jsonify(service.snapshot())


@monitor_bp.route("/api/monitor/status")
def monitor_status():
    service, err = _get_service()
    if err:
        return err
    return jsonify(service.get_status())


# ── Live SSE Stream ───────────────────────────────────────────

@monitor_bp.route("/api/stream")
def api_stream():
    """SSE stream: one full snapshot per debounced change, heartbeat when idle."""
    service, err = _get_service()
    if err:
        return err

    dispatcher = service.dispatcher
    heartbeat = current_app.config.get("SSE_HEARTBEAT_SEC", 30)
    client_q = dispatcher.register_client()

    def event_stream():
        try:
            while True:
                try:
                    snapshot = client_q.get(timeout=heartbeat)
                    yield f"data: {json.dumps(snapshot, ensure_ascii=False, default=str)}\n\n"
                except Empty:
                    yield f": heartbeat {int(time.time())}\n\n"
        except GeneratorExit:
            pass
        finally:
            dispatcher.unregister_client(client_q)

    return Response(
        event_stream(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )


# ── Folder Open ───────────────────────────────────────────────

@monitor_bp.route("/api/open-folder", methods=["POST"])
def api_open_folder():
    service, err = _get_service()
    if err:
        return err

    if service.folder_opener is None:
        return jsonify({"success": False, "error": "Folder open not configured"}), 503

    data = request.get_json(silent=True) or {}
    raw_path = (data.get("path") or request.args.get("path") or "").strip()
    if not raw_path:
        return jsonify({"success": False, "error": "path is required"}), 400

    try:
        opened = service.folder_opener.open(raw_path)
    except FolderAccessError:
        return jsonify({"success": False, "error": "Access forbidden"}), 403
    except FolderActionError as e:
        return jsonify({
            "success": False,
            "error": "Failed to open folder",
            "details": str(e),
        }), 500

    return jsonify({"success": True, "opened": str(opened)})


# ── Liveness ──────────────────────────────────────────────────

@monitor_bp.route("/api/test")
def api_test():
    return jsonify({"message": "Hello from the log dashboard backend!"})
