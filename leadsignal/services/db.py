"""
Lead store helpers — the reads the engine needs, grouped in one place.

All functions take an open session and never commit; the caller owns the
transaction.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, select

from leadsignal.engine.base import LeadNotFound
from leadsignal.models.lead import Lead
from leadsignal.models.comment import Comment
from leadsignal.models.analysis import Analysis

logger = logging.getLogger('services.db')


def list_lead_ids(session) -> List[int]:
    """All lead ids, oldest first."""
    return list(session.scalars(select(Lead.id).order_by(Lead.id)))


def get_lead(session, lead_id) -> Lead:
    """Load a lead or raise LeadNotFound."""
    lead = session.get(Lead, lead_id)
    if lead is None:
        raise LeadNotFound(lead_id)
    return lead


def comment_texts(session, lead_id) -> List[Optional[str]]:
    """Raw comment contents for a lead, in insertion order. May contain None."""
    return list(session.scalars(
        select(Comment.content).where(Comment.lead_id == lead_id).order_by(Comment.id)
    ))


def count_analyses(session, lead_id, run_id: str = None) -> int:
    """Number of analyses for a lead, optionally only those from one reprocess pass."""
    query = select(func.count(Analysis.id)).where(Analysis.lead_id == lead_id)
    if run_id is not None:
        query = query.where(Analysis.run_id == run_id)
    return session.scalar(query) or 0


def list_analyses(session, lead_id) -> List[Analysis]:
    """Analyses for a lead, newest first."""
    return list(session.scalars(
        select(Analysis).where(Analysis.lead_id == lead_id).order_by(Analysis.id.desc())
    ))


def latest_analysis(session, lead_id) -> Optional[Analysis]:
    return session.scalars(
        select(Analysis).where(Analysis.lead_id == lead_id).order_by(Analysis.id.desc()).limit(1)
    ).first()
