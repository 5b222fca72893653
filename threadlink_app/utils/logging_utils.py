import logging
import json
import os

# Relay context passed as `extra=` by the inbound and outbound services.
CONTEXT_FIELDS = ("conversation_id", "channel", "thread_ts")


class JsonFormatter(logging.Formatter):
    """Format log records as one JSON object per line, including relay context."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt or "%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "module": record.module,
            "funcName": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def build_logging_config(log_level: str, log_dir: str, json_log_file: str) -> dict:
    """dictConfig schema for the app: console, rotating text file, rotating JSON file."""
    handlers = ['console', 'app_file', 'json_file']
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'json': {
                '()': JsonFormatter,
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
        },
        'handlers': {
            'console': {
                'level': log_level,
                'class': 'logging.StreamHandler',
                'formatter': 'standard',
                'stream': 'ext://sys.stdout',
            },
            'app_file': {
                'level': log_level,
                'class': 'logging.handlers.RotatingFileHandler',
                'formatter': 'standard',
                'filename': os.path.join(log_dir, 'app.log'),
                'maxBytes': 10485760,
                'backupCount': 5,
                'encoding': 'utf8',
            },
            'json_file': {
                'level': log_level,
                'class': 'logging.handlers.RotatingFileHandler',
                'formatter': 'json',
                'filename': json_log_file,
                'maxBytes': 10485760,
                'backupCount': 5,
                'encoding': 'utf8',
            }
        },
        'loggers': {
            '': {'handlers': handlers, 'level': log_level, 'propagate': True},
            'werkzeug': {'handlers': handlers, 'level': 'INFO', 'propagate': False},
            'celery': {'handlers': handlers, 'level': log_level, 'propagate': False},
            'threadlink_app': {'handlers': handlers, 'level': log_level, 'propagate': False},
        }
    }
