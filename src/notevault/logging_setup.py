from __future__ import annotations

import logging
import logging.config
from pathlib import Path

from .config import NoteVaultConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(cfg: NoteVaultConfig) -> None:
    """Configure root logging from config.

    Console output goes to stderr so CLI commands can keep stdout for JSON.
    A file handler is added when `cfg.log_file` is set.
    """
    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "level": cfg.log_level,
            "stream": "ext://sys.stderr",
        },
    }
    if cfg.log_file:
        log_path = Path(cfg.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "level": cfg.log_level,
            "filename": str(log_path),
            "encoding": "utf-8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": handlers,
        "root": {"handlers": list(handlers), "level": cfg.log_level},
    })

    # Model loading is noisy at INFO
    for noisy in ("sentence_transformers", "urllib3", "filelock"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
