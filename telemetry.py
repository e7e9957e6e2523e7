# telemetry.py
import logging
import os
import sys
import warnings

APP_LOGGER = "procedo"

# third-party logger -> level it is pinned to
QUIET_LOGGERS = {
    "urllib3": logging.CRITICAL,
    "requests": logging.CRITICAL,
    "httpx": logging.CRITICAL,
    "pdfminer": logging.CRITICAL,
    "pdfplumber": logging.CRITICAL,
    "multipart": logging.CRITICAL,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def _level(env_name: str, default: str) -> int:
    return getattr(logging, os.getenv(env_name, default).upper(), logging.INFO)


def go_quiet(default_level="ERROR"):
    """
    Keep the console to Procedo's own pipeline logs.

    Root stays at `default_level` (PROCEDO_ROOT_LOG_LEVEL overrides), the PDF and
    HTTP stacks are pinned down, and the "procedo" logger writes to stdout at
    PROCEDO_LOG_LEVEL (INFO by default). Modules log through
    logging.getLogger("procedo.<module>").
    """
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    os.environ.setdefault("TQDM_DISABLE", "1")

    logging.basicConfig(
        level=_level("PROCEDO_ROOT_LOG_LEVEL", default_level),
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )
    for name, level in QUIET_LOGGERS.items():
        noisy = logging.getLogger(name)
        noisy.setLevel(level)
        noisy.propagate = False

    logging.captureWarnings(True)
    warnings.simplefilter("ignore")

    app_level = _level("PROCEDO_LOG_LEVEL", "INFO")
    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(app_level)
    app_logger.propagate = False
    if not app_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        app_logger.addHandler(handler)
    return app_logger
