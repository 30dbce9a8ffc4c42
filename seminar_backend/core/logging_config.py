import logging
import sys

from seminar_backend.core import config

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

# OTP codes go to their own logger so operators can route them separately.
OTP_LOGGER_NAME = "seminar_backend.otp"

_configured = False


def configure_logging(level: str | None = None) -> None:
    global _configured

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel((level or config.LOG_LEVEL).upper())
    root.addHandler(handler)

    # Third-party noise stays at WARNING unless debugging.
    for noisy in ("botocore", "boto3", "urllib3", "aiosmtplib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True


def get_otp_logger() -> logging.Logger:
    return logging.getLogger(OTP_LOGGER_NAME)
