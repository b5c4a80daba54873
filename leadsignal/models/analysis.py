"""
Analysis model — one immutable classification result for a lead.

Rows are only ever inserted (see leadsignal.engine.recorder). A lead may
accumulate several; the newest one is the current verdict.
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from leadsignal.database import Base


class Analysis(Base):
    __tablename__ = 'analyses'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey('leads.id'), nullable=False, index=True)
    score = Column(Integer, nullable=False, default=0)          # 0-100
    classification = Column(Text, nullable=False)
    summary = Column(Text, default='')
    pain_points = Column(JSON, default=list)
    issue_counts = Column(JSON, default=dict)                   # {vazamento: n, ...}
    priority_tier = Column(Text, nullable=True)
    sales_copy = Column(Text, nullable=True)
    status = Column(Text, default='Analisado')
    source = Column(Text, nullable=False, default='manual')     # manual / batch
    run_id = Column(Text, nullable=True, index=True)            # reprocess pass that created it
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    lead = relationship('Lead', back_populates='analyses')

    __mapper_args__ = {'eager_defaults': True}

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'score': self.score,
            'classification': self.classification,
            'summary': self.summary,
            'pain_points': self.pain_points or [],
            'issue_counts': self.issue_counts or {},
            'priority_tier': self.priority_tier,
            'sales_copy': self.sales_copy,
            'status': self.status,
            'source': self.source,
            'run_id': self.run_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
