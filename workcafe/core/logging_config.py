from __future__ import annotations

import logging
import logging.handlers
import os

# Third-party loggers that are chatty at INFO/WARNING.
_QUIET_LOGGERS = {
    "passlib": logging.ERROR,
    "multipart": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def configure_logging(*, log_dir: str, level: str = "INFO", filename: str = "workcafe.log") -> None:
    os.makedirs(log_dir, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name, lvl in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(lvl)

    if root.handlers:
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(formatter)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, filename),
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    root.addHandler(console)
    root.addHandler(file_handler)
