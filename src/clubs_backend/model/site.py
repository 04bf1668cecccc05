from sqlalchemy import JSON, Column, DateTime, String, func

from .base import Base


class SiteSetting(Base):
    __tablename__ = 'site_setting'

    key = Column(String(255), primary_key=True)
    value = Column(JSON)
    updated_at = Column(DateTime(True), nullable=False, server_default=func.now(), onupdate=func.now())
