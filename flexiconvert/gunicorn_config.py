"""
Gunicorn configuration for the FlexiConvert web process.

Run with ``gunicorn -c python:flexiconvert.gunicorn_config flexiconvert.wsgi:app``.
Socket.IO needs the eventlet worker and a single worker per process unless
``SOCKETIO_MESSAGE_QUEUE`` is set.
"""
import os

bind = os.getenv("BIND", "0.0.0.0:8060")
worker_class = "eventlet"
workers = int(os.getenv("WEB_CONCURRENCY", "1"))
timeout = 120


def post_fork(server, worker):
    """
    Called just after a worker has been forked.

    The parent's broker connection must not be shared with the child.
    """
    from flexiconvert.celery_config import reset_celery_broker_connection

    reset_celery_broker_connection()

    server.log.info("Celery broker connection reset in forked worker")
