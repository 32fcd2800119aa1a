"""Dashboard模板模型"""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Boolean, TIMESTAMP, JSON
from sqlalchemy.sql import func

from app.db.base_class import Base, BigIntegerPK


class DashboardTemplate(Base):
    """Dashboard模板表"""
    __tablename__ = "dashboard_templates"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, index=True)
    widgets = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=True)
    is_built_in = Column(Boolean, nullable=False, default=False, index=True)
    usage_count = Column(Integer, nullable=False, default=0)
    owner_id = Column(BigInteger, nullable=False, index=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())
