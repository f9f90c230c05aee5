"""Debug logging (writes to ~/.tooltrim/tooltrim.log when TOOLTRIM_DEBUG=true)."""

import logging
import os

from . import config

_ROOT = "tooltrim"
_configured = False


def _configure():
    global _configured  # noqa: PLW0603
    root = logging.getLogger(_ROOT)
    if config.get("debug"):
        from tooltrim import data_dir  # noqa: PLC0415

        log_dir = data_dir()
        os.makedirs(log_dir, exist_ok=True)
        handler = logging.FileHandler(os.path.join(log_dir, config.get("log_file")))
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s")
        )
        root.setLevel(logging.DEBUG)
        root.addHandler(handler)
    else:
        root.addHandler(logging.NullHandler())
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the tooltrim namespace, configuring it once."""
    if not _configured:
        _configure()
    return logging.getLogger(f"{_ROOT}.{name}")
