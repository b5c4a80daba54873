"""
Pipeline state machine — the only writer of Lead.status.

Manual moves are unrestricted by default: sales teams reopen discarded leads,
skip stages, and so on. A transition table is available as an opt-in strict
mode. The automatic path (auto_qualify) is used only by batch reprocessing.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from leadsignal.config import (
    LEAD_STATUSES,
    STATUS_TO_ANALYZE, STATUS_QUALIFIED, STATUS_CONTACTED,
    STATUS_NEGOTIATION, STATUS_CLOSED, STATUS_DISCARDED,
)
from leadsignal.engine.base import NotificationEvent
from leadsignal.engine.priority import tier_key

logger = logging.getLogger('engine.status')


class InvalidStatus(ValueError):
    """Target status is not one of the pipeline states."""


class InvalidTransition(ValueError):
    """Strict mode rejected a move between two valid states."""


# Strict mode only. Same-state moves are always allowed.
STRICT_TRANSITIONS: Dict[str, Set[str]] = {
    STATUS_TO_ANALYZE: {STATUS_QUALIFIED, STATUS_CONTACTED, STATUS_DISCARDED},
    STATUS_QUALIFIED: {STATUS_CONTACTED, STATUS_NEGOTIATION, STATUS_DISCARDED},
    STATUS_CONTACTED: {STATUS_QUALIFIED, STATUS_NEGOTIATION, STATUS_DISCARDED},
    STATUS_NEGOTIATION: {STATUS_CONTACTED, STATUS_CLOSED, STATUS_DISCARDED},
    STATUS_CLOSED: set(),
    STATUS_DISCARDED: {STATUS_TO_ANALYZE},
}

# Auto-qualification never pulls a lead back from these
AUTO_QUALIFY_BLOCKED = {STATUS_QUALIFIED, STATUS_CLOSED, STATUS_NEGOTIATION}


@dataclass
class TransitionResult:
    lead_id: int
    old_status: str
    new_status: str
    events: List[NotificationEvent] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status


def can_transition(old_status: str, new_status: str) -> bool:
    """Whether strict mode allows old_status → new_status."""
    if old_status == new_status:
        return True
    return new_status in STRICT_TRANSITIONS.get(old_status, set())


def _transition_events(lead, new_status) -> List[NotificationEvent]:
    if new_status == STATUS_CLOSED:
        return [NotificationEvent(
            type='success',
            title='🎉 Negócio Fechado!',
            message=f'{lead.name} foi convertido com sucesso!',
            metadata={'lead_id': lead.id},
        )]
    if new_status == STATUS_QUALIFIED:
        return [NotificationEvent(
            type='lead',
            title='🎯 Lead Qualificado',
            message=f'{lead.name} foi qualificado para abordagem comercial.',
            metadata={'lead_id': lead.id},
        )]
    return []


def set_status(lead, new_status: str, *, strict: bool = False) -> TransitionResult:
    """
    Overwrite lead.status and return the notification events for the move.

    Raises InvalidStatus for an unknown target, and InvalidTransition when
    strict mode forbids the move. Does not commit.
    """
    if new_status not in LEAD_STATUSES:
        raise InvalidStatus(f"Unknown status '{new_status}'. Valid: {LEAD_STATUSES}")

    old_status = lead.status or STATUS_TO_ANALYZE
    if strict and not can_transition(old_status, new_status):
        raise InvalidTransition(f"Transition '{old_status}' → '{new_status}' is not allowed")

    lead.status = new_status
    logger.info("Lead %s status %s → %s", lead.id, old_status, new_status)
    return TransitionResult(
        lead_id=lead.id,
        old_status=old_status,
        new_status=new_status,
        events=_transition_events(lead, new_status),
    )


def auto_qualify(lead, priority_tier: str) -> Optional[TransitionResult]:
    """Move a DIAMANTE-tier lead to Qualificado unless it is already past that point."""
    if tier_key(priority_tier) != 'DIAMANTE':
        return None
    if (lead.status or STATUS_TO_ANALYZE) in AUTO_QUALIFY_BLOCKED:
        return None
    return set_status(lead, STATUS_QUALIFIED)
