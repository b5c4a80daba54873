"""SQLAlchemy models. Imported together so relationships resolve by name."""
from leadsignal.models.lead import Lead
from leadsignal.models.comment import Comment
from leadsignal.models.analysis import Analysis
from leadsignal.models.notification import Notification

__all__ = ['Lead', 'Comment', 'Analysis', 'Notification']
