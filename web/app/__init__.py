__all__ = []

# Initialize persistent logging for the payroll API on import
from payroll.logging import setup_logging
from payroll.config import settings

setup_logging(
    service_name="web", log_dir=settings.LOG_DIR, level=settings.LOG_LEVEL, backup_days=settings.LOG_BACKUP_DAYS
)
