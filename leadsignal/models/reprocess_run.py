"""
ReprocessRun model — Redis-backed tracking for background reprocessing passes.

A ReprocessRun represents one sweep of the classification engine over the
whole lead corpus. Progress is mirrored here so the API can report it while
the RQ job is still running.
"""
import json
import uuid
from datetime import datetime
from typing import Dict, Optional, List

from leadsignal.config import REPROCESS_RUN_STATUSES
from leadsignal.extensions import redis_client as r


RUN_TTL = 86400 * 7  # 7 days
MAX_ERRORS = 20
FINISHED_STATUSES = frozenset(REPROCESS_RUN_STATUSES) - {'queued', 'running'}


class ReprocessRun:
    """
    Redis-backed reprocessing run.

    Keys:
        reprocess_run:{id}    → JSON blob of run state
        reprocess_runs:list   → sorted set of run IDs by creation time
    """

    def __init__(
        self,
        id: str = None,
        status: str = 'queued',
        policy: str = 'skip_existing',
    ):
        self.id = id or str(uuid.uuid4())
        self.status = status
        self.policy = policy
        self.created_at = datetime.now().isoformat()
        self.updated_at = self.created_at
        self.finished_at = None
        self.total = 0
        self.processed = 0
        self.updated = 0
        self.skipped = 0
        self.failed = 0
        self.transitioned = 0
        self.errors: List[Dict] = []
        self.cancel_requested = False
        self.summary = ''

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'status': self.status,
            'policy': self.policy,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'finished_at': self.finished_at,
            'total': self.total,
            'processed': self.processed,
            'updated': self.updated,
            'skipped': self.skipped,
            'failed': self.failed,
            'transitioned': self.transitioned,
            'errors': self.errors[-MAX_ERRORS:],
            'cancel_requested': self.cancel_requested,
            'summary': self.summary,
        }

    def save(self):
        """Persist run state to Redis."""
        self.updated_at = datetime.now().isoformat()
        r.setex(f'reprocess_run:{self.id}', RUN_TTL, json.dumps(self.to_dict()))
        r.zadd('reprocess_runs:list', {self.id: datetime.fromisoformat(self.created_at).timestamp()})
        return self

    def update_progress(self, summary):
        """Copy counters from a ReprocessSummary snapshot and save."""
        self.total = summary.total
        self.processed = summary.processed
        self.updated = summary.updated
        self.skipped = summary.skipped
        self.failed = summary.failed
        self.transitioned = summary.transitioned
        self.errors = [
            {'lead_id': f['lead_id'], 'message': f['error']}
            for f in summary.failures[-MAX_ERRORS:]
        ]
        self.save()

    def start(self):
        self.status = 'running'
        self.save()

    def complete(self, cancelled: bool = False):
        """Mark run as completed (or cancelled when stopped early)."""
        self.status = 'cancelled' if cancelled else 'completed'
        self.finished_at = datetime.now().isoformat()
        self.save()

    def fail(self, reason: str = ''):
        """Mark run as failed."""
        self.status = 'failed'
        self.finished_at = datetime.now().isoformat()
        if reason:
            self.errors.append({'lead_id': None, 'message': reason})
        self.save()

    def request_cancel(self):
        """Flag the run so workers stop between leads."""
        self.cancel_requested = True
        self.save()

    def is_cancel_requested(self) -> bool:
        """Re-read the cancel flag from Redis (set by another process)."""
        data = r.get(f'reprocess_run:{self.id}')
        if not data:
            return self.cancel_requested
        return bool(json.loads(data).get('cancel_requested'))

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    @classmethod
    def load(cls, run_id: str) -> Optional['ReprocessRun']:
        """Load a run from Redis."""
        data = r.get(f'reprocess_run:{run_id}')
        if not data:
            return None
        d = json.loads(data)
        run = cls.__new__(cls)
        run.id = d['id']
        run.status = d['status']
        run.policy = d.get('policy', 'skip_existing')
        run.created_at = d['created_at']
        run.updated_at = d.get('updated_at', run.created_at)
        run.finished_at = d.get('finished_at')
        run.total = d.get('total', 0)
        run.processed = d.get('processed', 0)
        run.updated = d.get('updated', 0)
        run.skipped = d.get('skipped', 0)
        run.failed = d.get('failed', 0)
        run.transitioned = d.get('transitioned', 0)
        run.errors = d.get('errors', [])
        run.cancel_requested = d.get('cancel_requested', False)
        run.summary = d.get('summary', '')
        return run

    @classmethod
    def list_recent(cls, limit: int = 20) -> List['ReprocessRun']:
        """List recent runs, newest first. Expired entries are skipped."""
        runs = []
        for run_id in r.zrevrange('reprocess_runs:list', 0, limit - 1):
            run = cls.load(run_id)
            if run:
                runs.append(run)
        return runs
