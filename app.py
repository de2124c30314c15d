#!/usr/bin/env python3
from flask import Flask, request, jsonify, Response, g
from werkzeug.exceptions import HTTPException
import logging
import queue
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

from alert_hub import AlertHub, ALERTS_CHANNEL, DETECTIONS_CHANNEL
from alerting import AlertService
from config import load_config
from secret_detector import DetectionStatus, SecretDetector, TeamsMessage
from storage import DetectionNotFoundError, MemoryStore
from teams_api import TeamsAPI
from teams_service import TeamsService

logger = logging.getLogger(__name__)

SERVICE_NAME = "teams-connector"
DEFAULT_LIMIT = 50
KEEPALIVE_SECONDS = 15.0

MSG_DETECTION_UPDATED = "Detection status updated successfully"
MSG_DETECTIONS_CLEARED = "All detections cleared successfully"
MSG_MESSAGE_PROCESSED = "Message processed successfully"
MSG_MESSAGE_PARTIAL = "Message processed; some alerts or storage writes failed"
MSG_SECRET_DETECTION_TEST = "Secret detection test completed"

ERR_INVALID_REQUEST_BODY = "Invalid request body"
ERR_INVALID_WEBHOOK_PAYLOAD = "Invalid webhook payload"
ERR_TEXT_REQUIRED = "Text is required"
ERR_INVALID_STATUS = "Invalid status. Must be: new, acknowledged, resolved, or false_positive"

app = Flask(__name__)

config = load_config()
store = MemoryStore()
hub = AlertHub(queue_size=config.alert_queue_size)
detector = SecretDetector(chunk_size=config.scan_chunk_size, overlap=config.scan_chunk_overlap)
teams_api = None if config.mock_mode else TeamsAPI(
    config.teams_client_id, config.teams_client_secret, config.tenant_id
)
alert_service = AlertService(config, hub=hub, teams_api=teams_api)
teams_service = TeamsService(store, alert_service=alert_service, detector=detector)


def api_response(data: Any = None, message: str = None, status: int = 200):
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return jsonify(body), status


def api_error(error: str, status: int):
    return jsonify({"success": False, "error": error}), status


@app.before_request
def start_timer():
    g.start_time = time.perf_counter()


@app.after_request
def log_request(response):
    latency_ms = (time.perf_counter() - g.get("start_time", time.perf_counter())) * 1000
    logger.info("%s - %s %s - %.2fms", response.status_code, request.method, request.path, latency_ms)
    return response


@app.errorhandler(HTTPException)
def handle_http_error(e: HTTPException):
    return api_error(e.description, e.code)


@app.errorhandler(Exception)
def handle_unexpected_error(e: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return api_error(f"Unexpected error: {str(e)}", 500)


@app.route("/api/health", methods=["GET"])
def api_health():
    return api_response({
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storedDetections": store.count(),
        "subscribers": {
            DETECTIONS_CHANNEL: hub.client_count(DETECTIONS_CHANNEL),
            ALERTS_CHANNEL: hub.client_count(ALERTS_CHANNEL),
        },
    })


@app.route("/api/stats", methods=["GET"])
def api_stats():
    return api_response(teams_service.get_stats())


@app.route("/api/detections", methods=["GET"])
def api_get_detections():
    try:
        limit = int(request.args.get("limit", DEFAULT_LIMIT))
    except ValueError:
        limit = DEFAULT_LIMIT

    detections = teams_service.get_detections(limit)
    return api_response([d.to_dict() for d in detections])


@app.route("/api/detections/channel/<channel_id>", methods=["GET"])
def api_get_detections_by_channel(channel_id: str):
    detections = teams_service.get_detections_by_channel(channel_id)
    return api_response([d.to_dict() for d in detections])


@app.route("/api/detections/status/<status>", methods=["GET"])
def api_get_detections_by_status(status: str):
    if not DetectionStatus.is_valid(status):
        return api_error(ERR_INVALID_STATUS, 400)

    detections = teams_service.get_detections_by_status(status)
    return api_response([d.to_dict() for d in detections])


@app.route("/api/detections/<detection_id>/status", methods=["PUT"])
def api_update_detection_status(detection_id: str):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(ERR_INVALID_REQUEST_BODY, 400)

    status = data.get("status", "")
    if not DetectionStatus.is_valid(status):
        return api_error(ERR_INVALID_STATUS, 400)

    try:
        detection = teams_service.update_detection_status(detection_id, status)
    except DetectionNotFoundError as e:
        return api_error(str(e), 404)

    return api_response(detection.to_dict(), MSG_DETECTION_UPDATED)


@app.route("/api/detections/clear", methods=["DELETE"])
def api_clear_detections():
    teams_service.clear_all_detections()
    return api_response(message=MSG_DETECTIONS_CLEARED)


@app.route("/api/webhook/teams", methods=["POST"])
def api_teams_webhook():
    # Graph subscription handshake: echo the token back as plain text.
    validation_token = request.args.get("validationToken")
    if validation_token:
        return Response(validation_token, status=200, mimetype="text/plain")

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or not isinstance(payload.get("message"), dict):
        return api_error(ERR_INVALID_WEBHOOK_PAYLOAD, 400)

    message = TeamsMessage.from_graph(
        payload["message"],
        channel_id=payload.get("channelId") or "",
        team_id=payload.get("teamId") or "",
    )
    if message.created_at is None:
        message.created_at = datetime.now(timezone.utc)

    result = teams_service.process_message(message)
    return api_response(result.to_dict(), MSG_MESSAGE_PARTIAL if result.partial else MSG_MESSAGE_PROCESSED)


@app.route("/api/test/detect", methods=["POST"])
def api_test_detection():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(ERR_INVALID_REQUEST_BODY, 400)

    text = data.get("text")
    if not isinstance(text, str) or not text:
        return api_error(ERR_TEXT_REQUIRED, 400)

    message = TeamsMessage(
        id=str(uuid.uuid4()),
        content=text,
        channel_id=data.get("channelId") or "",
        team_id="test-team",
        user_id="test-user-id",
        user_name=data.get("userName") or "",
        created_at=datetime.now(timezone.utc),
    )

    result = teams_service.process_message(message)
    response_data = result.to_dict()
    response_data["message"] = message.to_dict()
    return api_response(response_data, MSG_SECRET_DETECTION_TEST)


def event_stream(alert_hub: AlertHub, channel: str, keepalive: float = KEEPALIVE_SECONDS) -> Iterator[str]:
    """Server-Sent Events generator for one subscriber of the hub."""
    subscription = alert_hub.subscribe(channel)
    try:
        yield f"event: welcome\ndata: {channel} stream connected\n\n"
        while True:
            try:
                payload = subscription.get(timeout=keepalive)
            except queue.Empty:
                yield ": keepalive\n\n"
                continue
            yield f"data: {payload}\n\n"
    finally:
        alert_hub.unsubscribe(channel, subscription)


@app.route("/api/stream/detections", methods=["GET"])
def api_stream_detections():
    return Response(event_stream(hub, DETECTIONS_CHANNEL), mimetype="text/event-stream",
                    headers={"Cache-Control": "no-cache"})


@app.route("/api/stream/alerts", methods=["GET"])
def api_stream_alerts():
    return Response(event_stream(hub, ALERTS_CHANNEL), mimetype="text/event-stream",
                    headers={"Cache-Control": "no-cache"})


if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    print("""
╔════════════════════════════════════════════════════════════════╗
║                  Teams Security Connector                      ║
║        Detect leaked secrets in Teams channel messages         ║
╚════════════════════════════════════════════════════════════════╝
    """)
    logger.info("Webhook: http://%s:%s/api/webhook/teams", config.host, config.port)
    logger.info("Mock mode: %s", config.mock_mode)
    app.run(host=config.host, port=config.port, threaded=True)
