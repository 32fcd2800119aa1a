"""Custom metric模型"""
from sqlalchemy import Column, BigInteger, String, Text, Boolean, TIMESTAMP, JSON
from sqlalchemy.sql import func

from app.db.base_class import Base, BigIntegerPK


class CustomMetric(Base):
    """自定义指标表"""
    __tablename__ = "custom_metrics"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    data_source = Column(String(20), nullable=False)
    filters = Column(JSON, nullable=False, default=list)
    # {"function": ..., "field": ..., "group_by": ...}
    aggregation = Column(JSON, nullable=False)
    date_range = Column(String(20), nullable=True)
    chart_type = Column(String(20), nullable=False, default="number")
    color = Column(String(30), nullable=False, default="blue")
    icon = Column(String(50), nullable=False, default="BarChart3")
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    owner_id = Column(BigInteger, nullable=False, index=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())
