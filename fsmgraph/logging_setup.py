import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for the server / CLI entry points."""
    if level is None:
        from .config import get_settings
        level = get_settings().log_level

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # uvicorn installs its own handlers; keep its access log at our level
    logging.getLogger("uvicorn.access").setLevel(logging.getLogger().level)
