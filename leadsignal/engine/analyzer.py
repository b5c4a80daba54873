"""
Single-lead operations — the caller contracts used by the HTTP API.

analyze_lead()   detect → classify → prioritize → record, always a fresh
                 Analysis, no automatic status change.
change_status()  manual pipeline move plus its notifications.

Both commit on success, and roll back and re-raise on any failure so the
caller sees persistence errors.
"""
import logging
from contextlib import contextmanager

from leadsignal.config import STRICT_STATUS_TRANSITIONS
from leadsignal.database import get_session
from leadsignal.engine.recorder import record_analysis, SOURCE_MANUAL
from leadsignal.engine.status import set_status, TransitionResult
from leadsignal.engine.verdict import evaluate
from leadsignal.models.analysis import Analysis
from leadsignal.services.db import get_lead, comment_texts
from leadsignal.services.notifications import publish_events

logger = logging.getLogger('engine.analyzer')


@contextmanager
def _unit_of_work(session=None):
    """Yield a session and commit; roll back on error. Closes only sessions it opened."""
    owned = session is None
    session = session or get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        if owned:
            session.close()


def analyze_lead(lead_id, *, session=None) -> Analysis:
    """Analyze one lead's comments and persist a new Analysis.

    Raises LeadNotFound for an unknown id; persistence errors propagate.
    """
    with _unit_of_work(session) as s:
        lead = get_lead(s, lead_id)
        verdict = evaluate(comment_texts(s, lead.id), lead.sales_potential)
        analysis, events = record_analysis(s, lead, verdict, source=SOURCE_MANUAL)
        publish_events(s, events)
    logger.info("Manual analysis for lead %s stored (analysis=%s)", lead_id, analysis.id)
    return analysis


def change_status(lead_id, new_status: str, *, strict: bool = None, session=None) -> TransitionResult:
    """Set a lead's pipeline status by hand.

    strict defaults to the STRICT_STATUS_TRANSITIONS setting. Raises
    LeadNotFound, InvalidStatus or InvalidTransition.
    """
    if strict is None:
        strict = STRICT_STATUS_TRANSITIONS
    with _unit_of_work(session) as s:
        lead = get_lead(s, lead_id)
        result = set_status(lead, new_status, strict=strict)
        publish_events(s, result.events)
    return result
