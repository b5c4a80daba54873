"""
Batch Reprocessor — sweeps the whole lead corpus through the engine.

For every lead:
  comments → detect → classify → prioritize → record (if absent) → auto-qualify

Each lead is one atomic unit: per-lead lock, own session, own transaction.
A failing lead is rolled back and reported; the sweep carries on. Leads are
spread over a bounded thread pool, and a cancel signal is checked between
leads (never in the middle of one).

launch_reprocess() enqueues run_reprocess() as a background RQ job that
mirrors progress into a Redis-backed ReprocessRun.
"""
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

from leadsignal.config import REPROCESS_WORKERS, REPROCESS_POLICY, REPROCESS_JOB_TIMEOUT
from leadsignal.database import get_session
from leadsignal.engine.base import LeadNotFound
from leadsignal.engine.recorder import record_if_absent, REPROCESS_POLICIES
from leadsignal.engine.status import auto_qualify
from leadsignal.engine.verdict import evaluate
from leadsignal.models.reprocess_run import ReprocessRun
from leadsignal.services.db import list_lead_ids, get_lead, comment_texts
from leadsignal.services import locks as lead_locks
from leadsignal.services.locks import RedisLeadLocks
from leadsignal.services.notifications import (
    publish_events, notify_reprocess_complete, notify_reprocess_failed,
)

logger = logging.getLogger('engine.reprocessor')


# ── Lazy RQ queue (avoids import-time Redis connection) ─────────────────────

_queue = None

def _get_queue():
    global _queue
    if _queue is None:
        from leadsignal.extensions import redis_client
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


# ── Result types ─────────────────────────────────────────────────────────────

@dataclass
class LeadOutcome:
    """What happened to one lead in a sweep."""
    lead_id: int
    created: bool = False
    transitioned: bool = False
    error: Optional[str] = None


@dataclass
class ReprocessSummary:
    """Counters for one sweep. processed counts every lead attempted, failures included."""
    run_id: str
    policy: str
    total: int = 0
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    transitioned: int = 0
    not_started: int = 0
    failures: List[Dict] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.not_started > 0

    def record(self, outcome: LeadOutcome):
        self.processed += 1
        if outcome.error:
            self.failed += 1
            self.failures.append({'lead_id': outcome.lead_id, 'error': outcome.error})
        elif outcome.created:
            self.updated += 1
            if outcome.transitioned:
                self.transitioned += 1
        else:
            self.skipped += 1

    def to_dict(self) -> Dict:
        return {
            'run_id': self.run_id,
            'policy': self.policy,
            'total': self.total,
            'processed': self.processed,
            'updated': self.updated,
            'skipped': self.skipped,
            'failed': self.failed,
            'transitioned': self.transitioned,
            'cancelled': self.cancelled,
            'failures': list(self.failures),
        }


# ── Per-lead unit ────────────────────────────────────────────────────────────

def process_lead(
    lead_id,
    *,
    run_id: str,
    policy: str,
    session_factory=None,
    locks=None,
    skip_clean_leads: bool = True,
) -> LeadOutcome:
    """
    Run the full check-then-act sequence for one lead under its lock.

    Leads without any detected issue get no analysis when skip_clean_leads is
    set. Exceptions propagate after rollback; reprocess_all() records them.
    """
    session_factory = session_factory or get_session
    locks = locks or lead_locks.default_locks
    with locks.hold(lead_id):
        session = session_factory()
        try:
            lead = get_lead(session, lead_id)
            verdict = evaluate(comment_texts(session, lead.id), lead.sales_potential)
            if skip_clean_leads and not verdict.has_issues:
                return LeadOutcome(lead_id=lead_id)

            analysis, events = record_if_absent(session, lead, verdict, run_id=run_id, policy=policy)
            if analysis is None:
                return LeadOutcome(lead_id=lead_id)

            transition = auto_qualify(lead, verdict.priority_tier)
            if transition:
                events = events + transition.events

            publish_events(session, events)
            session.commit()
            return LeadOutcome(lead_id=lead_id, created=True, transitioned=transition is not None)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# ── Sweep ────────────────────────────────────────────────────────────────────

def reprocess_all(
    *,
    policy: str = None,
    workers: int = None,
    cancel_event: threading.Event = None,
    should_cancel: Callable[[], bool] = None,
    on_progress: Callable[[ReprocessSummary], None] = None,
    session_factory=None,
    locks=None,
    run_id: str = None,
    skip_clean_leads: bool = True,
) -> ReprocessSummary:
    """
    Reprocess every lead and return a ReprocessSummary.

    Args:
        policy:          'skip_existing' (default) or 'refresh'.
        workers:         thread pool size; 1 runs inline in the calling thread.
        cancel_event:    set it to stop the sweep; checked before each lead.
        should_cancel:   optional poll (e.g. a Redis flag), checked before each lead.
        on_progress:     called with a summary snapshot after each lead.
        session_factory: callable returning a new session per lead.
        locks:           per-lead lock provider (process-wide default_locks by default).
    """
    policy = policy or REPROCESS_POLICY
    if policy not in REPROCESS_POLICIES:
        raise ValueError(f"Unknown reprocess policy '{policy}'. Valid: {list(REPROCESS_POLICIES)}")
    workers = max(1, workers or REPROCESS_WORKERS)
    session_factory = session_factory or get_session
    locks = locks or lead_locks.default_locks
    cancel_event = cancel_event or threading.Event()
    run_id = run_id or str(uuid.uuid4())

    session = session_factory()
    try:
        lead_ids = list_lead_ids(session)
    finally:
        session.close()

    summary = ReprocessSummary(run_id=run_id, policy=policy, total=len(lead_ids))
    summary_lock = threading.Lock()
    logger.info("Reprocess %s starting — %d leads, policy=%s, workers=%d",
                run_id[:8], len(lead_ids), policy, workers, extra={'run_id': run_id, 'policy': policy})

    def _is_cancelled():
        if cancel_event.is_set():
            return True
        if should_cancel is not None:
            try:
                if should_cancel():
                    cancel_event.set()
                    return True
            except Exception:
                logger.warning("Cancel check failed — continuing", exc_info=True)
        return False

    def _work(lead_id):
        if _is_cancelled():
            with summary_lock:
                summary.not_started += 1
            return

        try:
            outcome = process_lead(
                lead_id,
                run_id=run_id,
                policy=policy,
                session_factory=session_factory,
                locks=locks,
                skip_clean_leads=skip_clean_leads,
            )
        except LeadNotFound:
            logger.warning("Lead %s disappeared during reprocess — skipping", lead_id)
            outcome = LeadOutcome(lead_id=lead_id)
        except Exception as e:
            logger.error("Lead %s failed during reprocess %s", lead_id, run_id[:8], exc_info=True,
                         extra={'lead_id': lead_id, 'run_id': run_id})
            outcome = LeadOutcome(lead_id=lead_id, error=f'{type(e).__name__}: {e}')

        # Progress is reported under the lock so snapshots arrive in order
        with summary_lock:
            summary.record(outcome)
            if on_progress is not None:
                try:
                    on_progress(replace(summary, failures=list(summary.failures)))
                except Exception:
                    logger.warning("Progress callback failed — continuing", exc_info=True)

    if workers == 1:
        for lead_id in lead_ids:
            _work(lead_id)
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='reprocess') as executor:
            list(executor.map(_work, lead_ids))

    logger.info("Reprocess %s done — processed=%d/%d, updated=%d, transitioned=%d, failed=%d%s",
                run_id[:8], summary.processed, summary.total, summary.updated,
                summary.transitioned, summary.failed, ' (cancelled)' if summary.cancelled else '')
    return summary


# ── Background runs (RQ) ─────────────────────────────────────────────────────

def launch_reprocess(policy: str = None) -> ReprocessRun:
    """Create a ReprocessRun and enqueue the sweep as a background RQ job."""
    policy = policy or REPROCESS_POLICY
    if policy not in REPROCESS_POLICIES:
        raise ValueError(f"Unknown reprocess policy '{policy}'. Valid: {list(REPROCESS_POLICIES)}")

    run = ReprocessRun(policy=policy)
    run.save()
    _get_queue().enqueue(run_reprocess, run.id, job_timeout=REPROCESS_JOB_TIMEOUT)
    logger.info("Reprocess run %s enqueued (policy=%s)", run.id[:8], policy)
    return run


def cancel_reprocess(run_id: str) -> Optional[ReprocessRun]:
    """Ask a running sweep to stop. Returns None for an unknown run."""
    run = ReprocessRun.load(run_id)
    if run is None:
        return None
    if not run.is_finished:
        run.request_cancel()
        logger.info("Cancel requested for reprocess run %s", run_id[:8])
    return run


def run_reprocess(run_id: str) -> Optional[Dict]:
    """RQ job body: run the sweep with Redis locks and mirror progress into the run."""
    run = ReprocessRun.load(run_id)
    if not run:
        logger.error("Reprocess run %s not found", run_id)
        return None

    from leadsignal.extensions import redis_client

    run.start()
    try:
        summary = reprocess_all(
            policy=run.policy,
            run_id=run.id,
            locks=RedisLeadLocks(redis_client),
            should_cancel=run.is_cancel_requested,
            on_progress=run.update_progress,
        )
    except Exception as e:
        logger.error("Reprocess run %s FAILED: %s", run_id[:8], e, exc_info=True)
        run.fail(f'Reprocess failed: {e}')
        run.summary = _generate_failed_summary(run)
        run.save()
        notify_reprocess_failed(run)
        return None

    run.update_progress(summary)
    run.summary = _generate_run_summary(summary)
    run.complete(cancelled=summary.cancelled)
    notify_reprocess_complete(run)
    return summary.to_dict()


# ── Run summary generator ────────────────────────────────────────────────────

def _generate_run_summary(summary: ReprocessSummary) -> str:
    """Human-readable summary of a sweep, shown on the reprocess page and in Slack."""
    if summary.total == 0:
        return 'Nenhum lead na base para reprocessar.'

    lines = [f'{summary.processed} de {summary.total} leads analisados.']

    if summary.updated:
        line = f'{summary.updated} novas análises criadas'
        if summary.transitioned:
            line += f', {summary.transitioned} leads qualificados automaticamente'
        lines.append(line + '.')
    else:
        lines.append('Nenhuma análise nova.')

    if summary.failed:
        lines.append(f'{summary.failed} leads falharam e foram ignorados.')

    if summary.cancelled:
        lines.append(f'Cancelado: {summary.not_started} leads não foram processados.')

    return ' '.join(lines)


def _generate_failed_summary(run: ReprocessRun) -> str:
    parts = [f'Reprocessamento falhou após {run.processed or 0} leads.']
    if run.errors:
        last = run.errors[-1]
        message = last.get('message', '') if isinstance(last, dict) else str(last)
        if message:
            parts.append(f'Erro: {message}')
    return ' '.join(parts)
