"""
Shared SocketIO broadcasting utility for both Flask and Celery workers.

Broadcasting is best-effort: a failed emit is logged and never affects the
job it describes.
"""
from datetime import datetime, timezone

from flask_socketio import SocketIO

from flexiconvert.config import Config
from flexiconvert.database.models import ConversionJob, get_db_session
from flexiconvert.utils.enhanced_logger import log_with_context, setup_enhanced_logging

logger = setup_enhanced_logging()

JOB_UPDATE_EVENT = "job_update"
QUEUE_UPDATE_EVENT = "queue_update"

_socketio_instance = None


def set_socketio_instance(socketio):
    """Use the web app's SocketIO server for emits made in this process."""
    global _socketio_instance
    _socketio_instance = socketio


def get_socketio_instance():
    """
    Get or create a SocketIO instance for broadcasting from background tasks.

    Workers have no server of their own; they publish through the message
    queue the web processes listen on. Returns None when no queue is
    configured, which disables worker broadcasts.
    """
    global _socketio_instance

    if _socketio_instance is None and Config.SOCKETIO_MESSAGE_QUEUE:
        _socketio_instance = SocketIO(
            message_queue=Config.SOCKETIO_MESSAGE_QUEUE,
            logger=False,
            engineio_logger=False,
        )

    return _socketio_instance


def broadcast_job_update(job):
    """Emit the status view of one job to subscribers of its room and the global feed."""
    socketio = get_socketio_instance()
    if socketio is None:
        return False

    try:
        payload = job.to_status_dict()
        socketio.emit(JOB_UPDATE_EVENT, payload, to=job.id)
        socketio.emit(JOB_UPDATE_EVENT, payload)
        return True
    except Exception as e:
        log_with_context(
            logger, "warning", f"Failed to broadcast job update: {e}",
            job_id=job.id,
            status=job.status.value if job.status else None,
        )
        return False


def broadcast_queue_update():
    """
    Broadcast current queue status to all connected clients.
    Can be called from Flask app or Celery workers.
    """
    socketio = get_socketio_instance()
    if socketio is None:
        return False

    db = get_db_session()
    try:
        jobs = db.query(ConversionJob).order_by(ConversionJob.created_at.desc()).limit(100).all()
        jobs_list = [job.to_status_dict() for job in jobs]

        queue_status = {
            "jobs": jobs_list,
            "total": len(jobs_list),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        socketio.emit(QUEUE_UPDATE_EVENT, queue_status)
        logger.info(f"Broadcasted queue update: {len(jobs_list)} jobs")
        return True

    except Exception as e:
        logger.error(f"Error broadcasting queue update: {e}")
        return False
    finally:
        db.close()
