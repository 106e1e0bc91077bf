from __future__ import annotations

import logging


def get_logger(name: str) -> logging.Logger:
    # basicConfig is a no-op once configure_logging has installed the JSON
    # handler, so this only matters for imports outside the entrypoint.
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return logging.getLogger(name)
