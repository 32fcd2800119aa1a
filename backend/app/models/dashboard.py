"""Dashboard模型"""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Boolean, TIMESTAMP, JSON
from sqlalchemy.sql import func

from app.db.base_class import Base, BigIntegerPK


class Dashboard(Base):
    """Dashboard仪表盘表"""
    __tablename__ = "dashboards"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(BigInteger, nullable=False, index=True)
    # Ordered widget list; each widget embeds a copy of its metric config
    widgets = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    is_template = Column(Boolean, nullable=False, default=False, index=True)
    is_default = Column(Boolean, nullable=False, default=False)
    access_count = Column(Integer, nullable=False, default=0)
    last_accessed_at = Column(TIMESTAMP, nullable=True)
    # Bumped on every widget save; compared only when the caller asks for it
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())
