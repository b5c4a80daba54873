"""
Reports service — packaging-analysis metrics for the reports page.

Status and potential breakdowns cover every lead. Analysis-based metrics
(average score, top leads, tier distribution) only look at the first
REPORT_ANALYSIS_LIMIT leads, using each lead's newest analysis.
"""
import logging
from collections import Counter
from typing import Dict, List

from sqlalchemy import select

from leadsignal.config import (
    REPORT_ANALYSIS_LIMIT,
    STATUS_TO_ANALYZE, STATUS_QUALIFIED, STATUS_NEGOTIATION, STATUS_CLOSED,
)
from leadsignal.engine.priority import PRIORITY_TIERS, normalize_potential, tier_key
from leadsignal.models.lead import Lead
from leadsignal.services.db import latest_analysis

logger = logging.getLogger('services.reports')

_POTENTIAL_BUCKETS = {
    'ALTISSIMO': 'high',
    'ALTO': 'high',
    'MEDIO': 'medium',
    'BAIXO': 'low',
}


def _percentage(count: int, total: int) -> int:
    return round(count / total * 100) if total > 0 else 0


def get_report_metrics(session) -> Dict:
    """Aggregate pipeline and packaging-analysis metrics."""
    leads: List[Lead] = list(session.scalars(select(Lead).order_by(Lead.id)))
    total = len(leads)

    by_status = Counter(lead.status or STATUS_TO_ANALYZE for lead in leads)
    potential = Counter(_POTENTIAL_BUCKETS.get(normalize_potential(lead.sales_potential), 'unknown')
                        for lead in leads)

    scored = []
    for lead in leads[:REPORT_ANALYSIS_LIMIT]:
        analysis = latest_analysis(session, lead.id)
        if analysis is not None and analysis.score > 0:
            scored.append((lead, analysis))

    avg_score = round(sum(a.score for _, a in scored) / len(scored), 1) if scored else 0.0
    tiers = Counter(tier_key(a.priority_tier) for _, a in scored)
    top = sorted(scored, key=lambda item: item[1].score, reverse=True)[:10]

    qualified = by_status.get(STATUS_QUALIFIED, 0)
    negotiation = by_status.get(STATUS_NEGOTIATION, 0)
    closed = by_status.get(STATUS_CLOSED, 0)

    return {
        'total_leads': total,
        'analyzed_count': len(scored),
        'qualified_count': qualified,
        'high_potential_count': potential.get('high', 0),
        'medium_potential_count': potential.get('medium', 0),
        'low_potential_count': potential.get('low', 0),
        'avg_score': avg_score,
        'by_status': [{'status': s, 'count': c} for s, c in by_status.most_common()],
        'priority_tiers': {key: tiers.get(key, 0) for key in map(tier_key, PRIORITY_TIERS)},
        'top_leads': [
            {
                'id': lead.id,
                'name': lead.name,
                'score': analysis.score,
                'potential': lead.sales_potential,
                'priority_tier': analysis.priority_tier,
            }
            for lead, analysis in top
        ],
        'conversion_funnel': [
            {'stage': 'Leads Totais', 'count': total, 'percentage': 100 if total else 0},
            {'stage': 'Analisados', 'count': len(scored), 'percentage': _percentage(len(scored), total)},
            {'stage': 'Qualificados', 'count': qualified, 'percentage': _percentage(qualified, total)},
            {'stage': 'Em Negociação', 'count': negotiation, 'percentage': _percentage(negotiation, total)},
            {'stage': 'Fechados', 'count': closed, 'percentage': _percentage(closed, total)},
        ],
    }
