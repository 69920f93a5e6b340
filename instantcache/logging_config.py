# instantcache/logging_config.py
import logging
import logging.config
from pathlib import Path
from typing import Optional

# Chatty third-party loggers kept at WARNING unless DEBUG is on
QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler")


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure logging for the cache service.

    Args:
        log_level: Level for the service's own loggers (DEBUG, INFO, ...)
        log_file: Optional path for a rotating file log (production only)
    """
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    handlers = ['console']
    config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            }
        },
        'handlers': {
            'console': {
                'level': log_level,
                'class': 'logging.StreamHandler',
                'formatter': 'standard',
                'stream': 'ext://sys.stdout'
            }
        },
        'loggers': {
            '': {
                'handlers': handlers,
                'level': log_level,
                'propagate': False
            },
            'uvicorn.access': {
                'handlers': handlers,
                'level': 'INFO',
                'propagate': False
            },
        }
    }

    third_party_level = log_level if log_level == "DEBUG" else "WARNING"
    for name in QUIET_LOGGERS:
        config['loggers'][name] = {
            'handlers': handlers,
            'level': third_party_level,
            'propagate': False
        }

    if log_file:
        config['handlers']['file'] = {
            'level': log_level,
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'detailed',
            'filename': log_file,
            'maxBytes': 10485760,  # 10MB
            'backupCount': 5
        }
        for logger_cfg in config['loggers'].values():
            logger_cfg['handlers'] = handlers + ['file']

    logging.config.dictConfig(config)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured with level: {log_level}")
    if log_file:
        logger.info(f"Log file: {log_file}")
