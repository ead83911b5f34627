# -*- coding: utf-8 -*-
from __future__ import annotations
import logging, logging.handlers
from pathlib import Path

LOG_FILENAME = "boutique_hub.log"

def _is_ours(h: logging.Handler) -> bool:
    return getattr(h, "baseFilename", "").endswith(LOG_FILENAME)

def setup_logging(settings, level: int = logging.INFO) -> Path:
    """Configure rotating file logging under INVENTORY_DATA_ROOT/logs/boutique_hub.log"""
    root = Path(settings.INVENTORY_DATA_ROOT).expanduser()
    log_dir = root / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler = logging.handlers.RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
    handler.setFormatter(fmt)
    handler.setLevel(level)

    logger = logging.getLogger()  # root
    logger.setLevel(level)
    if not any(_is_ours(h) for h in logger.handlers):
        logger.addHandler(handler)

    # uvicorn loggers do not propagate to root
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.setLevel(level)
        if not any(_is_ours(h) for h in lg.handlers):
            lg.addHandler(handler)

    return log_path
