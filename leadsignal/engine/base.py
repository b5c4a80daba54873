"""
Shared engine contracts.

Engine operations never write notifications themselves: they return
NotificationEvent values and the caller hands them to
leadsignal.services.notifications.publish_events() inside its transaction.
"""
from dataclasses import dataclass, field
from typing import Any, Dict


class LeadNotFound(LookupError):
    """Raised when an operation targets a lead id that does not exist."""

    def __init__(self, lead_id):
        super().__init__(f"Lead {lead_id} not found")
        self.lead_id = lead_id


@dataclass(frozen=True)
class NotificationEvent:
    """A notification to append to the store, not yet persisted."""
    type: str            # analysis / lead / success
    title: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)
