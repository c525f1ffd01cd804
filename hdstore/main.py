"""
Main application factory for hdstore
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from . import __version__
from .config import load_config, get_config_manager
from .models import Config
from .middleware import setup_middleware
from .api import setup_api_routes
from .metrics import metrics_manager
from .sessions import SessionStore
from .storage_server import StorageServer


logger = logging.getLogger(__name__)


def setup_logging(config: Config):
    """Setup logging configuration"""
    log_config = config.logging

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_config.level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Create formatter
    if log_config.json:
        formatter = logging.Formatter(
            '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","msg":"%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if configured
    if log_config.file:
        log_file = Path(log_config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=log_config.max_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def create_directories(config: Config):
    """Create necessary directories"""
    try:
        config.storage.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Ensured storage root exists: {config.storage.root}")

        # Create log directory
        if config.logging.file:
            log_dir = Path(config.logging.file).parent
            log_dir.mkdir(parents=True, exist_ok=True)

    except Exception as e:
        logger.error(f"Failed to create directories: {e}")
        raise


def create_app(config_path: str = None) -> FastAPI:
    """Create FastAPI application"""

    # If not provided explicitly, fall back to env or default
    if not config_path:
        config_path = os.getenv("HDSTORE_CONFIG", "hdstore.yaml")
    config = load_config(config_path)
    config_manager = get_config_manager()

    setup_logging(config)
    create_directories(config)

    app = FastAPI(
        title="hdstore",
        description="Session-scoped file storage for the Home Designer tools",
        version=__version__,
        docs_url="/docs" if os.getenv("HDSTORE_DEBUG") else None,
        redoc_url="/redoc" if os.getenv("HDSTORE_DEBUG") else None,
    )

    # Per-application state handed to every request handler
    app.state.config = config
    app.state.config_manager = config_manager
    app.state.sessions = SessionStore(ttl_seconds=config.sessions.ttl_seconds)
    app.state.storage = StorageServer(
        config.storage.root,
        max_upload_size=config.storage.max_upload_size,
    )

    def on_config_reloaded(old_config: Config, new_config: Config):
        # users are re-read on every login; only the session TTL needs pushing
        app.state.config = new_config
        app.state.sessions.ttl_seconds = new_config.sessions.ttl_seconds
        if old_config and old_config.storage.root != new_config.storage.root:
            logger.warning("Storage root changed; restart required for it to take effect")

    config_manager.add_reload_callback(on_config_reloaded)

    setup_middleware(app)
    setup_api_routes(app, config.server.endpoint)

    try:
        config_manager.start_watching()
    except Exception:
        logger.warning("Failed to start config watcher; continuing without hot reload")

    # Health check endpoint
    @app.get("/healthz")
    async def health_check():
        return {"ok": True, "version": __version__}

    # Metrics endpoint
    @app.get("/metrics")
    async def get_metrics():
        data = metrics_manager.get_metrics()
        data["sessions"] = len(app.state.sessions)
        return data

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"hdstore starting on {config.server.addr}:{config.server.port}")
        logger.info(f"Endpoint: {config.server.endpoint}")
        logger.info(f"Storage root: {config.storage.root}")

    @app.on_event("shutdown")
    async def shutdown_event():
        config_manager.stop_watching()
        logger.info("hdstore shutdown complete")

    return app


def main():
    """Main entry point for running the server"""
    import argparse

    parser = argparse.ArgumentParser(description="hdstore storage server")
    parser.add_argument("--config", "-c", default="hdstore.yaml", help="Configuration file path")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument("--hash-password", metavar="PASSWORD", default=None,
                        help="Print a bcrypt hash for the users section and exit")

    args = parser.parse_args()

    if args.hash_password is not None:
        from .auth import hash_password
        print(hash_password(args.hash_password))
        return

    # Set debug environment
    if args.debug:
        os.environ["HDSTORE_DEBUG"] = "1"

    # The factory reads the path from the environment
    os.environ["HDSTORE_CONFIG"] = args.config

    config = load_config(args.config)

    # Override with command line args
    host = args.host or config.server.addr
    port = args.port or config.server.port

    uvicorn.run(
        "hdstore.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
        access_log=False,  # We handle access logging ourselves
        server_header=False,
        date_header=False,
    )


if __name__ == "__main__":
    main()
