"""
Lead model — one row per prospect (restaurant) tracked through the sales pipeline.

sales_potential is assigned externally; status is only written through
leadsignal.engine.status.
"""
from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from leadsignal.config import STATUS_TO_ANALYZE
from leadsignal.database import Base


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, default='')
    sales_potential = Column(Text, nullable=True)   # ALTÍSSIMO / ALTO / MÉDIO / BAIXO
    status = Column(Text, nullable=True, default=STATUS_TO_ANALYZE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    comments = relationship('Comment', back_populates='lead', order_by='Comment.id')
    analyses = relationship('Analysis', back_populates='lead', order_by='Analysis.id')

    @property
    def current_status(self):
        """Status with the unset value read as 'A Analisar'."""
        return self.status or STATUS_TO_ANALYZE

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'sales_potential': self.sales_potential,
            'status': self.current_status,
        }
