"""Application entry point."""
import logging
import os
import signal
import threading

from github_watcher import config
from github_watcher.notifier import NotificationService
from github_watcher.watcher import GitHubWatcher


def setup_logging():
    """Set up logging configuration."""
    log_level = logging.DEBUG if config.DEBUG else logging.INFO

    log_dir = config.LOG_DIR
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),  # Log to console
            logging.FileHandler(f'{log_dir}/github_watcher.log')  # Log to file
        ]
    )


def setup_signal_handlers(shutdown):
    """Set up signal handlers for graceful shutdown."""
    logger = logging.getLogger(__name__)

    # pylint: disable=unused-argument
    def signal_handler(sig, frame):
        logger.info("Received signal %s, shutting down gracefully...", sig)
        shutdown.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def main():
    """Main entry point for the application."""
    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("Initializing GitHub watcher")

    shutdown = threading.Event()
    setup_signal_handlers(shutdown)

    try:
        watcher_config = config.validate(config.raw_config_from_env())
        watcher = GitHubWatcher(NotificationService(), config.WATCHER_INSTANCE_ID)
        watcher.enable(watcher_config)
    except Exception as e:
        logger.error("Failed to start watcher: %s", e)
        raise

    try:
        shutdown.wait()
    finally:
        watcher.disable()

    logger.info("GitHub watcher stopped")


if __name__ == "__main__":
    main()
