"""Scheduled report模型"""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Boolean, TIMESTAMP, JSON, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.db.base_class import Base, BigIntegerPK


class ScheduledReport(Base):
    """定时报表表"""
    __tablename__ = "scheduled_reports"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    dashboard_id = Column(BigInteger, ForeignKey("dashboards.id", ondelete="CASCADE"), nullable=False, index=True)
    # {"frequency", "day_of_week", "day_of_month", "time", "timezone"}
    schedule = Column(JSON, nullable=False)
    recipients = Column(JSON, nullable=False, default=list)
    format = Column(String(10), nullable=False)  # pdf, excel, csv
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    last_sent_at = Column(TIMESTAMP, nullable=True)
    # Naive UTC
    next_send_at = Column(TIMESTAMP, nullable=False, index=True)
    error_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    owner_id = Column(BigInteger, nullable=False, index=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())

    # 关系
    dashboard = relationship("Dashboard")
