from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for CLI runs."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # Provider SDKs log every HTTP request at INFO.
    for noisy in ("httpx", "openai", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
