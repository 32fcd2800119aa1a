"""Business record tables read by the analytics data sources.

The CRUD surface for these records lives in the records service; this
backend only reads them, so the models carry no relationships.
"""
from sqlalchemy import Column, BigInteger, String, Text, Boolean, TIMESTAMP, Float, JSON
from sqlalchemy.sql import func

from app.db.base_class import Base, BigIntegerPK


class Project(Base):
    """项目表"""
    __tablename__ = "projects"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="open", index=True)  # open, closed
    expected_revenue = Column(Float, nullable=True)
    start_date = Column(TIMESTAMP, nullable=True)
    end_date = Column(TIMESTAMP, nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False, index=True)
    archived_at = Column(TIMESTAMP, nullable=True)
    created_by = Column(BigInteger, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())


class Task(Base):
    """任务表"""
    __tablename__ = "tasks"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="todo", index=True)  # todo, in_progress, done
    priority = Column(String(20), nullable=True)  # low, medium, high
    due_date = Column(TIMESTAMP, nullable=True)
    project_id = Column(BigInteger, nullable=True, index=True)
    assigned_to = Column(BigInteger, nullable=True, index=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_pattern = Column(String(20), nullable=True)
    created_by = Column(BigInteger, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())


class Contact(Base):
    """联系人表"""
    __tablename__ = "contacts"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, nullable=True)
    created_by = Column(BigInteger, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())


class ProjectPayment(Base):
    """项目收款表"""
    __tablename__ = "project_payments"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    project_id = Column(BigInteger, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    date = Column(TIMESTAMP, nullable=False, index=True)
    method = Column(String(20), nullable=True)  # bank_transfer, card, cash, cheque
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    net_amount = Column(Float, nullable=True)
    vat_amount = Column(Float, nullable=True)
    gross_amount = Column(Float, nullable=True)
    vat_rate = Column(Float, nullable=True)
    is_vat_inclusive = Column(Boolean, nullable=True)
    created_by = Column(BigInteger, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now())


class Invoice(Base):
    """发票表"""
    __tablename__ = "invoices"

    id = Column(BigIntegerPK, primary_key=True, index=True, autoincrement=True)
    invoice_number = Column(String(50), nullable=False, unique=True)
    project_id = Column(BigInteger, nullable=False, index=True)
    contact_id = Column(BigInteger, nullable=True)
    issue_date = Column(TIMESTAMP, nullable=False)
    due_date = Column(TIMESTAMP, nullable=False)
    paid_date = Column(TIMESTAMP, nullable=True)
    subtotal = Column(Float, nullable=False, default=0)
    total_vat = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="draft", index=True)  # draft, sent, paid, overdue, cancelled
    payment_terms = Column(String(100), nullable=True)
    created_by = Column(BigInteger, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(TIMESTAMP, nullable=False, server_default=func.now(), onupdate=func.now())
