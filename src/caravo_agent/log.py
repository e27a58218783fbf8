import logging
import sys

LOG_FORMAT = "[caravo] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Send package logs to stderr; stdout belongs to the host protocol."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("caravo_agent")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False
