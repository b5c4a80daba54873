"""
Analysis recorder — inserts immutable Analysis rows and builds their
notification events.

Two entry points:
  record_analysis()   always inserts (single-lead analysis)
  record_if_absent()  batch reprocessing, guarded by a ReprocessPolicy

Neither commits. record_if_absent() must run under the caller's per-lead lock
so the existence check and the insert happen as one unit.
"""
import logging
from typing import List, Optional, Tuple

from leadsignal.config import HOT_LEAD_SCORE_THRESHOLD
from leadsignal.engine.base import NotificationEvent
from leadsignal.engine.verdict import Verdict
from leadsignal.models.analysis import Analysis
from leadsignal.services.db import count_analyses

logger = logging.getLogger('engine.recorder')


# ── Reprocess policies ───────────────────────────────────────────────────────
# skip_existing: a lead that has any analysis is never re-analyzed by a batch.
# refresh:       a lead gets at most one new analysis per batch pass.
POLICY_SKIP_EXISTING = 'skip_existing'
POLICY_REFRESH = 'refresh'
REPROCESS_POLICIES = (POLICY_SKIP_EXISTING, POLICY_REFRESH)

SOURCE_MANUAL = 'manual'
SOURCE_BATCH = 'batch'

BATCH_SUMMARY_PREFIX = '[AUTO-REPROCESS] '


def build_analysis(lead, verdict: Verdict, *, source: str = SOURCE_MANUAL, run_id: str = None) -> Analysis:
    summary = verdict.classification.summary
    if source == SOURCE_BATCH:
        summary = BATCH_SUMMARY_PREFIX + summary
    return Analysis(
        lead_id=lead.id,
        score=verdict.score,
        classification=verdict.label,
        summary=summary,
        pain_points=list(verdict.classification.pain_points),
        issue_counts=verdict.counts.to_dict(),
        priority_tier=verdict.priority_tier,
        sales_copy=f'Focar em: {verdict.classification.summary}',
        status='Analisado',
        source=source,
        run_id=run_id,
    )


def analysis_events(lead, score: int, hot_threshold: int = None) -> List[NotificationEvent]:
    """'Analysis done' event, plus a 'hot lead' event when the score crosses the threshold."""
    threshold = HOT_LEAD_SCORE_THRESHOLD if hot_threshold is None else hot_threshold
    events = [NotificationEvent(
        type='analysis',
        title='🤖 Análise IA Concluída',
        message=f'Análise de {lead.name} finalizada. Score: {score}/100',
        metadata={'lead_id': lead.id, 'score': score},
    )]
    if score >= threshold:
        events.append(NotificationEvent(
            type='lead',
            title='🔥 Lead Quente Detectado!',
            message=f'{lead.name} tem alto potencial (Score: {score}). Priorizar contato!',
            metadata={'lead_id': lead.id, 'score': score},
        ))
    return events


def record_analysis(
    session, lead, verdict: Verdict, *, source: str = SOURCE_MANUAL, run_id: str = None,
) -> Tuple[Analysis, List[NotificationEvent]]:
    """Insert a new Analysis unconditionally. Flushes so the row gets an id."""
    analysis = build_analysis(lead, verdict, source=source, run_id=run_id)
    session.add(analysis)
    session.flush()
    logger.info("Lead %s analyzed — %s (score=%d, tier=%s)",
                lead.id, verdict.label, verdict.score, verdict.priority_tier)
    return analysis, analysis_events(lead, verdict.score)


def record_if_absent(
    session, lead, verdict: Verdict, *, run_id: str, policy: str = POLICY_SKIP_EXISTING,
) -> Tuple[Optional[Analysis], List[NotificationEvent]]:
    """
    Batch variant: insert only when the policy says the lead has no usable analysis.

    Returns (None, []) when the lead is skipped.
    """
    if policy not in REPROCESS_POLICIES:
        raise ValueError(f"Unknown reprocess policy '{policy}'. Valid: {list(REPROCESS_POLICIES)}")

    if policy == POLICY_REFRESH:
        existing = count_analyses(session, lead.id, run_id=run_id)
    else:
        existing = count_analyses(session, lead.id)

    if existing:
        logger.debug("Lead %s already has %d analyses (policy=%s) — skipping", lead.id, existing, policy)
        return None, []

    return record_analysis(session, lead, verdict, source=SOURCE_BATCH, run_id=run_id)
