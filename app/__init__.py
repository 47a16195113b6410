import os
import atexit

from flask import Flask, jsonify
from flask_cors import CORS

# scheduler imports
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor

from app.logging_config import configure_logging, get_logger
from app.models import db

logger = get_logger(__name__)


def build_queue_components(app):
    """
    Wire the queue store, intake service, CRM gateway and worker onto
    app.extensions. The worker is left out (None) when no CRM key is set;
    orders are still accepted and queued.
    """
    from app.keycrm.client import build_crm_client
    from app.queue.dispatcher import DispatchSettings, OrderDispatcher
    from app.queue.retry import RetryPolicy, RetryScheduler
    from app.queue.service import OrderQueue
    from app.queue.store import build_queue_store
    from app.queue.worker import QueueWorker
    from app.services.history_service import HistoryService

    store = build_queue_store(app.config)
    app.extensions["queue_store"] = store
    app.extensions["order_queue"] = OrderQueue(store, history=HistoryService)

    if not app.config.get("KEYCRM_KEY"):
        logger.error("KEYCRM_KEY is not set; queue worker disabled")
        app.extensions["queue_worker"] = None
        return

    dispatcher = OrderDispatcher(
        build_crm_client(app.config),
        store,
        DispatchSettings.from_config(app.config),
    )
    retry_scheduler = RetryScheduler(store, RetryPolicy.from_config(app.config))
    app.extensions["queue_worker"] = QueueWorker(
        store, dispatcher, retry_scheduler, history=HistoryService
    )


def init_scheduler(app):
    """Start the background queue worker (plus a heartbeat for monitoring)."""

    # --- Only one process may consume the queue ---
    if os.environ.get("WERKZEUG_RUN_MAIN") != "true" and not os.environ.get("RUN_QUEUE_WORKER"):
        logger.info("Skipping scheduler startup on this worker")
        return None

    worker = app.extensions.get("queue_worker")
    if worker is None:
        logger.warning("No queue worker configured; scheduler not started")
        return None

    # --- Configure scheduler ---
    executors = {"default": ThreadPoolExecutor(2)}
    scheduler = BackgroundScheduler(executors=executors)

    def run_tick():
        with app.app_context():
            worker.tick()

    def heartbeat():
        with app.app_context():
            try:
                lengths = app.extensions["order_queue"].queue_lengths()
            except Exception as e:
                logger.error("Scheduler heartbeat: queue store unreachable", error=str(e))
                return
            logger.info("Scheduler heartbeat: alive", **lengths)

    interval_seconds = app.config["PROCESSING_INTERVAL"] / 1000
    scheduler.add_job(
        func=run_tick,
        trigger="interval",
        seconds=interval_seconds,
        id="queue_worker",
        replace_existing=True,
        max_instances=1,   # overlapping runs are dropped by APScheduler too
        coalesce=True,
    )
    scheduler.add_job(
        func=heartbeat,
        trigger="interval",
        minutes=30,
        id="heartbeat",
        replace_existing=True,
    )

    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))

    logger.info("Scheduler started", processing_interval_seconds=interval_seconds)
    return scheduler


def create_app(config_class=None, start_scheduler=True):
    # Import config after dotenv is loaded
    from app.config import get_config
    from app.db_config import configure_database
    from app.webhook import webhook_bp
    from app.history import history_bp

    # Get the appropriate config class based on environment
    config_class = config_class or get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(log_level=app.config["LOG_LEVEL"], log_file=app.config.get("LOG_FILE"))
    logger.info(f"Starting application in {config_class.ENV} environment")

    # Configure database separately
    configure_database(app)
    db.init_app(app)
    with app.app_context():
        db.create_all()

    allowed_origins = app.config.get("CORS_ORIGINS", "*")
    if allowed_origins != "*":
        # Parse comma-separated list if provided
        allowed_origins = [origin.strip() for origin in allowed_origins.split(",")]
    CORS(app,
         resources={r"/*": {"origins": allowed_origins}},
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "DELETE", "OPTIONS"])

    build_queue_components(app)

    # Register blueprints
    app.register_blueprint(webhook_bp)
    app.register_blueprint(history_bp)

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle all exceptions with a JSON body."""
        logger.error("Unhandled exception", error=str(e), exc_info=True)

        if hasattr(e, "code") and isinstance(e.code, int):
            status_code = e.code
        else:
            status_code = 500

        response = jsonify({
            "error": str(e),
            "message": "An error occurred processing your request"
        })
        response.status_code = status_code
        return response

    # Operator scripts build the app for its extensions only
    if not start_scheduler:
        app.extensions["scheduler"] = None
        return app

    # Initialize scheduler safely
    try:
        app.extensions["scheduler"] = init_scheduler(app)
    except Exception as e:
        logger.error("Failed to start scheduler", error=str(e))

    return app
