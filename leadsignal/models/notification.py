"""
Notification model — append-only feed of pipeline events shown to sellers.
"""
from sqlalchemy import Column, Integer, Text, Boolean, DateTime, JSON
from sqlalchemy.sql import func

from leadsignal.database import Base


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(Text, nullable=False)          # analysis / lead / success
    title = Column(Text, nullable=False)
    message = Column(Text, default='')
    metadata_json = Column('metadata', JSON, default=dict)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
