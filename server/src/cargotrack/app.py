"""
CargoTrack application factory.

Wires the scan ingestion, barcode resolution, manifest and public tracking
blueprints to either in-memory or PostgreSQL repositories, and sets up
logging, rate limiting and the Socket.IO broadcaster.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, current_app
from flask_socketio import SocketIO

from cargotrack.ratelimit import create_rate_limiter
from cargotrack.repositories import (
    DatabaseBarcodeRepository,
    DatabaseInvoiceRepository,
    DatabaseManifestRepository,
    DatabaseScanRepository,
    DatabaseShipmentRepository,
    InMemoryBarcodeRepository,
    InMemoryInvoiceRepository,
    InMemoryManifestRepository,
    InMemoryScanRepository,
    InMemoryShipmentRepository,
)
from cargotrack.services import (
    BarcodeResolver,
    ManifestAssemblyService,
    ScanIngestionService,
    SocketIOScanBroadcaster,
    TrackingResolver,
)

DEFAULT_CONFIG: Dict[str, Any] = {
    "APP_NAME": "CargoTrack",
    "REST_API_PREFIX": "/api",
    "SOCKETIO_NAMESPACE": "/",
    "SOCKETIO_PATH": "/socket.io",
    "STORE_BACKEND": "memory",
    "RATE_LIMIT_BACKEND": "",
    "RATE_LIMIT_REDIS_URL": "",
    "RATE_LIMIT_BUCKETS": {},
    "database": {"dsn": ""},
}

socketio = SocketIO(async_mode="gevent", cors_allowed_origins="*")
REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_LOG_PATH = REPO_ROOT / "logs" / "app.log"


def create_app() -> Flask:
    """Create and configure the Flask application instance."""
    app = Flask(__name__)
    app.config['SECRET_KEY'] = app.config.get('SECRET_KEY', 'dev-secret')
    load_configuration(app)
    configure_logging(app)
    socketio.init_app(
        app,
        cors_allowed_origins="*",
        path=app.config.get("SOCKETIO_PATH", "/socket.io"),
    )
    initialize_services(app)
    register_blueprints(app)

    @app.route("/healthz", methods=["GET"])
    def healthz():
        """Return application health information."""
        return (
            jsonify(
                {
                    "status": "ok",
                    "app": app.config.get("APP_NAME"),
                    "api_prefix": app.config.get("REST_API_PREFIX"),
                    "store": app.config.get("STORE_BACKEND"),
                    "rate_limiting": app.config["RATE_LIMITER"].configured,
                }
            ),
            200,
        )

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints for REST APIs."""
    from cargotrack.api import (
        scans_bp,
        barcodes_bp,
        manifests_bp,
        tracking_bp,
        activity_bp,
    )

    app.register_blueprint(scans_bp)
    app.register_blueprint(barcodes_bp)
    app.register_blueprint(manifests_bp)
    app.register_blueprint(tracking_bp)
    app.register_blueprint(activity_bp)


@socketio.on("connect")
def handle_socket_connect(auth):
    current_app.logger.info("Socket.IO client connected auth=%s", auth)


def load_configuration(app: Flask, config_path: Optional[str] = None) -> None:
    """
    Load configuration into the Flask app.

    Preference order:
    1. Explicit `config_path` (pointing to TOML file)
    2. `CARGOTRACK_CONFIG` environment variable
    3. `server/config/default.toml` (if present)
    4. In-memory defaults (`DEFAULT_CONFIG`)
    """
    app.config.from_mapping(DEFAULT_CONFIG)

    explicit_path = config_path or os.environ.get("CARGOTRACK_CONFIG") or app.config.get("CARGOTRACK_CONFIG")

    if explicit_path:
        config_file = Path(explicit_path).expanduser()
    else:
        config_file = REPO_ROOT / "config" / "default.toml"

    if config_file.exists():
        try:
            import tomllib

            with config_file.open("rb") as fh:
                data = tomllib.load(fh)
            app.config.update(data)
        except (OSError, ValueError) as exc:
            app.logger.warning("Failed to load config %s: %s", config_file, exc)


def configure_logging(app: Flask) -> None:
    """Configure Python logging based on app config."""
    logging_cfg = app.config.get("logging") or {}
    level_name = str(logging_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    log_path = logging_cfg.get("path") or str(DEFAULT_LOG_PATH)
    if log_path:
        try:
            log_file = Path(log_path).expanduser()
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as exc:
            app.logger.warning("Failed to configure file logging %s: %s", log_path, exc)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    for handler in handlers:
        root_logger.addHandler(handler)

    app.logger.setLevel(level)


def initialize_services(app: Flask) -> None:
    """Initialize repositories and services and attach them to the app config."""
    backend = str(app.config.get("STORE_BACKEND", "memory")).lower()
    app.config["SOCKETIO_INSTANCE"] = socketio

    if backend == "db":
        dsn = (app.config.get("database") or {}).get("dsn", "")
        if not dsn:
            app.logger.warning("STORE_BACKEND='db' but database.dsn is empty; storage calls will fail")
        scans = DatabaseScanRepository(dsn)
        barcodes = DatabaseBarcodeRepository(dsn)
        shipments = DatabaseShipmentRepository(dsn)
        invoices = DatabaseInvoiceRepository(dsn)
        manifests = DatabaseManifestRepository(dsn)
    else:
        scans = InMemoryScanRepository()
        barcodes = InMemoryBarcodeRepository()
        shipments = InMemoryShipmentRepository()
        invoices = InMemoryInvoiceRepository()
        manifests = InMemoryManifestRepository()

    app.config["SCAN_REPOSITORY"] = scans
    app.config["BARCODE_REPOSITORY"] = barcodes
    app.config["SHIPMENT_REPOSITORY"] = shipments
    app.config["INVOICE_REPOSITORY"] = invoices
    app.config["MANIFEST_REPOSITORY"] = manifests

    app.config["SCAN_INGESTION_SERVICE"] = ScanIngestionService(scans, barcodes)
    app.config["BARCODE_RESOLVER"] = BarcodeResolver(barcodes)
    app.config["MANIFEST_SERVICE"] = ManifestAssemblyService(barcodes, shipments, manifests)
    app.config["TRACKING_RESOLVER"] = TrackingResolver(shipments, barcodes, scans, invoices)
    app.config["RATE_LIMITER"] = create_rate_limiter(app.config)

    if not app.config.get("BROADCAST_SERVICE"):
        app.config["BROADCAST_SERVICE"] = SocketIOScanBroadcaster(
            socketio=app.config.get("SOCKETIO_INSTANCE"),
            namespace=app.config.get("SOCKETIO_NAMESPACE", "/"),
        )


def run() -> None:
    """Run the development server (for local testing only)."""
    app = create_app()
    socketio.run(app, host="0.0.0.0", port=8501, debug=True, use_reloader=False)


if __name__ == "__main__":
    run()
