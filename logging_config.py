import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Send everything to stdout; calling again replaces the old handlers."""
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # uvicorn already prints its own access log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return logging.getLogger("legion")
