import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path


LOG_FORMAT = "%(asctime)s %(levelname)s [%(service)s] %(name)s %(message)s"

# chatty at INFO; payout events are what we want in the file
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


class ServiceFilter(logging.Filter):
    """Stamps every record with the service name so mixed logs stay attributable."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service_name
        return True


def setup_logging(service_name: str, log_dir: str, level: str = "INFO", backup_days: int = 31) -> Path:
    """Console plus a daily rotated file under ``<log_dir>/<service_name>/``.

    Returns the path of the active log file.
    """
    level = level.upper()
    p = Path(log_dir) / service_name
    p.mkdir(parents=True, exist_ok=True)
    log_file = p / f"{service_name}.log"

    root = logging.getLogger()
    root.setLevel(level)

    # reload safe
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    service_filter = ServiceFilter(service_name)

    ch = logging.StreamHandler()
    fh = TimedRotatingFileHandler(
        filename=str(log_file), when="midnight", backupCount=backup_days, encoding="utf-8"
    )
    for h in (ch, fh):
        h.setLevel(level)
        h.setFormatter(formatter)
        h.addFilter(service_filter)
        root.addHandler(h)

    if level != "DEBUG":
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "LOGGING_INITIALIZED service=%s file=%s level=%s", service_name, log_file, level
    )
    return log_file
