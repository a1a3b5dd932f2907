import logging
import sys
from typing import Optional
from typing_extensions import TypeAlias

from Kontour.config import AppConfig

# Type alias for Logger to make it available for import
Logger: TypeAlias = logging.Logger


def setup_logging(
    process_name: Optional[str] = None, config: Optional[AppConfig] = None
) -> logging.Logger:
    """
    Configures and returns the main application logger.
    All logs are directed to the standard error stream (stderr).
    """
    app_config = config or AppConfig.get_instance()

    logger = logging.getLogger("Kontour")

    # Prevent logs from propagating to the root logger if it has other handlers
    logger.propagate = False

    # Clear any existing handlers to prevent duplicate logging
    if logger.hasHandlers():
        logger.handlers.clear()

    log_level_str = app_config.log_level.upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    logger.setLevel(log_level)

    formatter = logging.Formatter(
        "%(asctime)s - [%(name)s] - [%(levelname)s] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    # The REST layer is chatty at DEBUG; keep it at INFO unless asked otherwise.
    logging.getLogger("kubernetes_asyncio.client.rest").setLevel(logging.INFO)

    log_message = (
        f"--- Kontour {process_name} Logging Initialized ---"
        if process_name
        else "--- Kontour Logging Initialized ---"
    )
    logger.debug(log_message)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Returns a logger instance. If name is provided, it's a child of the main
    'Kontour' logger. Otherwise, it's the main logger itself.
    """
    if name:
        return logging.getLogger(f"Kontour.{name}")
    return logging.getLogger("Kontour")
