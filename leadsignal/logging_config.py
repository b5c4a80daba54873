"""
Structured logging configuration.

Called once from create_app(). Text (human-readable) or JSON output is picked
by LOG_FORMAT, the level by LOG_LEVEL (default INFO).

Engine code can attach lead/run context with `extra={'lead_id': ..., 'run_id': ...}`;
the JSON formatter lifts those into top-level fields so a whole reprocess pass
can be filtered in the log aggregator.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

from leadsignal.config import LOG_LEVEL, LOG_FORMAT


# Record attributes copied into the JSON entry when present
CONTEXT_FIELDS = ('lead_id', 'run_id', 'policy')


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        # Lead names and statuses are Portuguese; keep accents readable
        return json.dumps(entry, ensure_ascii=False, default=str)


# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'rq.worker',
    'sqlalchemy.engine',
    'werkzeug',
]


def configure_logging(app=None):
    """
    Set up root logger with format/level from env vars.

    Environment variables (read at call time, falling back to leadsignal.config):
        LOG_LEVEL  — Python log level name (default: INFO)
        LOG_FORMAT — "text" (default) or "json"
    """
    level_name = os.getenv('LOG_LEVEL', LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    log_format = os.getenv('LOG_FORMAT', LOG_FORMAT).lower()

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s %(name)s — %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.debug("Logging configured (level=%s, format=%s)", level_name, log_format)
