import logging.config
import sys
from typing import Any, Dict

SIMPLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"
DETAILED_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s\n%(pathname)s:%(lineno)d\n%(message)s"

# 외부 라이브러리 로거는 WARNING 이상만 (stripe 요청 로그, SQL 로그 등)
QUIET_LOGGERS = ("stripe", "sqlalchemy.engine", "urllib3")


def build_logging_config(log_level: str = "INFO") -> Dict[str, Any]:
    log_level = log_level.upper()
    loggers: Dict[str, Any] = {
        "": {"handlers": ["console"], "level": log_level},
        "rewardsapi": {
            "handlers": ["console", "error_console"],
            "level": log_level,
            "propagate": False,
        },
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"handlers": ["console"], "level": "WARNING", "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {"format": SIMPLE_FORMAT},
            "detailed": {"format": DETAILED_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "stream": sys.stdout,
            },
            # 경고/에러는 위치 정보와 함께 stderr로 한 번 더
            "error_console": {
                "class": "logging.StreamHandler",
                "formatter": "detailed",
                "stream": sys.stderr,
                "level": "WARNING",
            },
        },
        "loggers": loggers,
    }


def setup_logging(log_level: str = "INFO") -> None:
    logging.config.dictConfig(build_logging_config(log_level))
