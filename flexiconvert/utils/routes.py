import json
from collections import Counter

from flask import current_app, jsonify, request, send_file
from werkzeug.exceptions import RequestEntityTooLarge

from flexiconvert.converters.capabilities import DEFAULT_CAPABILITIES
from flexiconvert.database.models import format_bytes, get_db_session
from flexiconvert.database.utils import get_job, list_jobs
from flexiconvert.tasks import enqueue_conversion
from flexiconvert.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from flexiconvert.utils.enums.job_status import JobStatus
from flexiconvert.utils.file_validation import ValidationError
from flexiconvert.utils.intake import EnqueueError, submit_job
from flexiconvert.utils.socketio_broadcast import broadcast_queue_update
from flexiconvert.utils.storage import OUTPUTS, UPLOADS, get_storage

logger = setup_enhanced_logging()

USER_HEADER = "X-User-Id"


def _storage():
    return get_storage(current_app.config["STORAGE_PATH"])


def _parse_settings(raw):
    if raw is None or raw.strip() == "":
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError("Settings must be valid JSON")


def register_routes(app):
    """Register all Flask routes."""

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        limit = current_app.config.get("MAX_CONTENT_LENGTH")
        return jsonify({"error": f"Upload exceeds the {format_bytes(limit)} limit"}), 413

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check endpoint."""
        return jsonify({"status": "healthy", "service": "flexiconvert"}), 200

    @app.route("/formats", methods=["GET"])
    def get_formats():
        """Conversion matrix: every accepted input format and its targets."""
        return jsonify({
            "formats": DEFAULT_CAPABILITIES.as_dict(),
            "max_upload_size": current_app.config["MAX_CONTENT_LENGTH"],
            "max_upload_size_human": format_bytes(current_app.config["MAX_CONTENT_LENGTH"]),
        }), 200

    @app.route("/jobs", methods=["POST"])
    def create_job():
        """
        Create a new conversion job and upload file.

        Expects:
            - file: File upload
            - target_format: Requested output format
            - settings: Optional JSON object of conversion options
            - tool_name: Optional tool identifier
        """
        if "file" not in request.files:
            return jsonify({"error": "No file provided"}), 400

        file = request.files["file"]
        if file.filename == "":
            return jsonify({"error": "No file selected"}), 400

        db = get_db_session()
        try:
            job = submit_job(
                db,
                _storage(),
                file,
                file.filename,
                request.form.get("target_format", ""),
                settings=_parse_settings(request.form.get("settings")),
                user_id=request.headers.get(USER_HEADER) or None,
                tool_name=request.form.get("tool_name"),
                max_size=current_app.config["MAX_CONTENT_LENGTH"],
                declared_size=file.content_length or None,
                enqueue=lambda job_id: enqueue_conversion(job_id),
            )

            try:
                broadcast_queue_update()
            except Exception as e:
                logger.warning(f"Could not broadcast queue update: {e}")

            return jsonify({
                "job_id": job.id,
                "status": job.status.value,
                "message": "Job created and queued successfully",
            }), 201

        except ValidationError as e:
            logger.info(f"Rejected upload '{file.filename}': {e.message}")
            return jsonify({"error": e.message}), e.status_code
        except EnqueueError as e:
            return jsonify({"error": str(e)}), 503
        except IOError as e:
            logger.error(f"File operation error during job creation: {e}")
            return jsonify({"error": "Failed to process uploaded file"}), 500
        except Exception as e:
            logger.exception(f"Unexpected error during job creation: {e}")
            return jsonify({"error": "Internal server error"}), 500
        finally:
            db.close()

    @app.route("/status/<job_id>", methods=["GET"])
    def get_job_status(job_id):
        """Get status of a conversion job."""
        db = get_db_session()
        try:
            job = get_job(db, job_id)

            if not job:
                return jsonify({"error": "Job not found"}), 404

            return jsonify(job.to_status_dict()), 200

        finally:
            db.close()

    @app.route("/download/<job_id>", methods=["GET"])
    def download_file(job_id):
        """Download converted file."""
        db = get_db_session()
        try:
            job = get_job(db, job_id)

            if not job:
                return jsonify({"error": "Job not found"}), 404

            if job.status != JobStatus.COMPLETED:
                return jsonify({"error": "Job not completed yet", "status": job.status.value}), 400

            output_path = _storage().output_path(job.processed_filename)
            if not output_path.is_file():
                log_with_context(logger, "warning", "Output missing for completed job", job_id=job_id)
                return jsonify({"error": "Output file not found"}), 404

            return send_file(
                output_path,
                as_attachment=True,
                download_name=job.download_name,
                mimetype="application/octet-stream",
            )

        finally:
            db.close()

    @app.route("/jobs/<job_id>", methods=["DELETE"])
    def delete_job(job_id):
        """
        Delete a finished job from both database and filesystem.

        Jobs still pending or processing belong to a worker and are refused.
        """
        db = get_db_session()
        try:
            job = get_job(db, job_id)

            if not job:
                return jsonify({"error": "Job not found"}), 404

            if not job.is_terminal:
                return jsonify({"error": "Can only delete finished jobs", "status": job.status.value}), 409

            storage = _storage()
            try:
                storage.delete_file(UPLOADS, job.stored_filename)
                if job.processed_filename:
                    storage.delete_file(OUTPUTS, job.processed_filename)
            except OSError as e:
                # The retention sweeper collects anything left behind as an orphan
                logger.warning(f"Failed to delete files for job {job_id}: {e}")

            db.delete(job)
            db.commit()

            log_with_context(logger, "info", "Job deleted", job_id=job_id)
            return jsonify({"message": "Job deleted successfully", "job_id": job_id}), 200

        except Exception as e:
            logger.error(f"Error deleting job {job_id}: {e}")
            db.rollback()
            return jsonify({"error": "Failed to delete job"}), 500
        finally:
            db.close()

    @app.route("/api/queue/status", methods=["GET"])
    def get_queue_status():
        """Recent jobs (optionally only the caller's) with per-status counts."""
        limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
        db = get_db_session()
        try:
            jobs = list_jobs(db, user_id=request.headers.get(USER_HEADER) or None, limit=limit)
            counts = Counter(job.status.value for job in jobs)

            return jsonify({
                "jobs": [job.to_status_dict() for job in jobs],
                "counts": {status.value: counts.get(status.value, 0) for status in JobStatus},
                "total": len(jobs),
            }), 200

        finally:
            db.close()

    return app
