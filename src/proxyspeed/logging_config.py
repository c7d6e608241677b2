import logging
import re
from typing import Optional


class SensitiveDataFilter(logging.Filter):
    """Filter to mask sensitive information in logs"""

    PATTERNS = {
        "credential": r"(?:id|uuid|password|token|auth-str)\s*[=:]\s*['\"]?[A-Za-z0-9\-]{16,}",
        "email": r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
    }

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        message = re.sub(
            self.PATTERNS["credential"], "[MASKED_CREDENTIAL]", message, flags=re.IGNORECASE
        )
        message = re.sub(self.PATTERNS["email"], "[MASKED_EMAIL]", message)

        record.msg = message
        record.args = ()
        return True


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    mask_sensitive: bool = True,
) -> None:
    """Setup logging with optional sensitive data filtering"""

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplication
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        if mask_sensitive:
            handler.addFilter(SensitiveDataFilter())
        root_logger.addHandler(handler)

    for noisy in ("aiohttp", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
