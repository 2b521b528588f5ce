"""
Flask application factory: HTTP routes, CORS and Socket.IO.
"""

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO, emit, join_room

from flexiconvert.config import Config
from flexiconvert.database.models import get_db_session, init_db
from flexiconvert.database.utils import get_job
from flexiconvert.utils.enhanced_logger import setup_enhanced_logging
from flexiconvert.utils.routes import register_routes
from flexiconvert.utils.socketio_broadcast import (
    JOB_UPDATE_EVENT,
    broadcast_queue_update,
    set_socketio_instance,
)
from flexiconvert.utils.storage import get_storage

logger = setup_enhanced_logging()

socketio = SocketIO()


def _origins(value):
    value = (value or "").strip()
    if not value or value == "*":
        return "*"
    return [o.strip() for o in value.split(",") if o.strip()]


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    init_db(app.config["DATABASE_URL"])
    storage = get_storage(app.config["STORAGE_PATH"])

    logger.info(f"Max upload size: {app.config['MAX_CONTENT_LENGTH'] / (1024 * 1024):.0f}MB")
    logger.info(f"Storage configured: uploads={storage.uploads_path}, outputs={storage.outputs_path}")

    allowed_origins = _origins(app.config["ALLOWED_ORIGINS"])
    logger.info(f"CORS allowed origins: {allowed_origins}")
    CORS(
        app,
        resources={r"/*": {"origins": allowed_origins}},
        methods=["GET", "POST", "OPTIONS", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-User-Id"],
        expose_headers=["Content-Type", "Content-Disposition"],
        max_age=3600,
    )

    message_queue = app.config["SOCKETIO_MESSAGE_QUEUE"] or None
    socketio.init_app(
        app,
        message_queue=message_queue,
        cors_allowed_origins=_origins(app.config["SOCKETIO_CORS_ORIGINS"]),
        async_mode=app.config["SOCKETIO_ASYNC_MODE"],
        logger=False,
        engineio_logger=False,
    )
    set_socketio_instance(socketio)
    logger.info(f"SocketIO initialized (async_mode={app.config['SOCKETIO_ASYNC_MODE']}, message_queue={message_queue})")

    register_routes(app)
    return app


# WebSocket event handlers
@socketio.on("connect")
def handle_connect():
    """Handle client connection."""
    logger.info("Client connected")


@socketio.on("disconnect")
def handle_disconnect():
    """Handle client disconnection."""
    logger.info("Client disconnected")


@socketio.on("subscribe_job")
def handle_subscribe_job(data):
    """Join the room of one job and send its current state."""
    job_id = (data or {}).get("job_id")
    if not job_id:
        return
    join_room(job_id)
    db = get_db_session()
    try:
        job = get_job(db, job_id)
        if job:
            emit(JOB_UPDATE_EVENT, job.to_status_dict())
    finally:
        db.close()


@socketio.on("request_queue_status")
def handle_request_queue_status():
    """Handle manual queue status request."""
    logger.info("Client requested queue status")
    broadcast_queue_update()
