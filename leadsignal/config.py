"""
Centralized configuration — all env vars, constants, status vocabulary.
"""
import os


def _env_flag(name, default='0'):
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Reprocessing ─────────────────────────────────────────────────────────────
REPROCESS_WORKERS = int(os.getenv('REPROCESS_WORKERS', '4'))
REPROCESS_POLICY = os.getenv('REPROCESS_POLICY', 'skip_existing')
REPROCESS_JOB_TIMEOUT = int(os.getenv('REPROCESS_JOB_TIMEOUT', '3600'))
LEAD_LOCK_TIMEOUT = int(os.getenv('LEAD_LOCK_TIMEOUT', '60'))

# Leads with a score at or above this get an extra "hot lead" notification
HOT_LEAD_SCORE_THRESHOLD = int(os.getenv('HOT_LEAD_SCORE_THRESHOLD', '80'))

# Detail metrics only look at the first N leads
REPORT_ANALYSIS_LIMIT = 100

# ── Status transitions ───────────────────────────────────────────────────────
STRICT_STATUS_TRANSITIONS = _env_flag('STRICT_STATUS_TRANSITIONS')

# ── Lead status values (pipeline stages) ─────────────────────────────────────
STATUS_TO_ANALYZE = 'A Analisar'
STATUS_QUALIFIED = 'Qualificado'
STATUS_CONTACTED = 'Contatado'
STATUS_NEGOTIATION = 'Negociação'
STATUS_CLOSED = 'Fechado'
STATUS_DISCARDED = 'Descartado'

LEAD_STATUSES = [
    STATUS_TO_ANALYZE,
    STATUS_QUALIFIED,
    STATUS_CONTACTED,
    STATUS_NEGOTIATION,
    STATUS_CLOSED,
    STATUS_DISCARDED,
]

# ── Reprocess run status values ──────────────────────────────────────────────
REPROCESS_RUN_STATUSES = [
    'queued',
    'running',
    'completed',
    'failed',
    'cancelled',
]
