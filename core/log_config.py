# core/log_config.py
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once per process."""
    global _configured
    if _configured:
        return

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # SQL echo is controlled by the engine, keep the library quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
