"""
Score + classification — turns issue counts into a verdict label.

Pure functions of their inputs. The label vocabulary is fixed; the score is
the aggregate hit count scaled to 0-100.
"""
from dataclasses import dataclass, field
from typing import List

from leadsignal.engine.taxonomy import IssueCounts


LABEL_LOW = 'BAIXO POTENCIAL'
LABEL_LEAKAGE = 'ALTA PRIORIDADE (VAZAMENTO)'
LABEL_TEMPERATURE = 'ALTA PRIORIDADE (TEMPERATURA)'
LABEL_TEMP_SUFFIX = ' + TEMP'
LABEL_CRITICAL = 'DIAMANTE - CRÍTICO'
LABEL_CLEAN = 'SEM PROBLEMAS DETECTADOS'

PAIN_LEAKAGE = 'Problemas críticos com vazamento'
PAIN_TEMPERATURE = 'Reclamações sobre temperatura'
PAIN_WEAK_PACKAGING = 'Embalagem frágil ou danificada'

CRITICAL_VOLUME = 3
POINTS_PER_ISSUE = 20
MAX_SCORE = 100

NO_ISSUES_SUMMARY = 'Nenhum problema grave de embalagem detectado nos comentários recentes.'


@dataclass
class Classification:
    label: str
    pain_points: List[str] = field(default_factory=list)
    summary: str = NO_ISSUES_SUMMARY
    total: int = 0
    score: int = 0


def score_for(total: int) -> int:
    """Bounded score: 20 points per category hit, capped at 100."""
    return max(0, min(total * POINTS_PER_ISSUE, MAX_SCORE))


def classify(counts: IssueCounts) -> Classification:
    """Build the label, pain points and summary from detected issue counts.

    Presentation issues are counted by the detector but never produce a pain
    point or change the label on their own; they only add to the volume.
    """
    label = LABEL_LOW
    pain_points = []

    if counts.leakage > 0:
        label = LABEL_LEAKAGE
        pain_points.append(PAIN_LEAKAGE)
    if counts.temperature > 0:
        label = label + LABEL_TEMP_SUFFIX if counts.leakage > 0 else LABEL_TEMPERATURE
        pain_points.append(PAIN_TEMPERATURE)
    if counts.weak_packaging > 0:
        pain_points.append(PAIN_WEAK_PACKAGING)

    # Volume overrides whatever the categories said
    if counts.total >= CRITICAL_VOLUME:
        label = LABEL_CRITICAL
    elif counts.total == 0:
        label = LABEL_CLEAN

    if pain_points:
        summary = f"Detectados {counts.total} problemas: {', '.join(pain_points)}"
    else:
        summary = NO_ISSUES_SUMMARY

    return Classification(
        label=label,
        pain_points=pain_points,
        summary=summary,
        total=counts.total,
        score=score_for(counts.total),
    )
