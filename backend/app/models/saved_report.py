"""Saved report模型"""
from sqlalchemy import Column, BigInteger, String, Text, Boolean, TIMESTAMP, JSON
from sqlalchemy.sql import func

from app.db.base_class import Base, BigIntegerPK


class SavedReport(Base):
    """保存的报表配置表"""
    __tablename__ = "saved_reports"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    report_type = Column(String(20), nullable=False, default="custom")  # dashboard, custom
    configuration = Column(JSON, nullable=False, default=dict)
    is_default = Column(Boolean, nullable=False, default=False)
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    owner_id = Column(BigInteger, nullable=False, index=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())
