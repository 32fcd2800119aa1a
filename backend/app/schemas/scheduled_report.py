"""Scheduled report Schema定义"""
from typing import Optional, List, Literal
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import re

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.partial_update import PartialUpdate

Frequency = Literal["daily", "weekly", "monthly", "quarterly"]
ReportFormat = Literal["pdf", "excel", "csv"]
RecipientKind = Literal["user", "external"]

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ScheduleSpec(BaseModel):
    """
    发送计划

    day_of_week (0=Sunday ... 6=Saturday) 仅 weekly 时必填；
    day_of_month (1-31) 仅 monthly / quarterly 时必填。
    """
    frequency: Frequency
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    time: str = Field("09:00", description="本地时间 HH:MM")
    timezone: str = Field("UTC", description="IANA 时区")

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not _TIME_PATTERN.match(v):
            raise ValueError("time 必须为 HH:MM (00:00-23:59)")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone '{v}'")
        return v

    @model_validator(mode="after")
    def check_day_fields(self):
        if self.frequency == "weekly":
            if self.day_of_week is None:
                raise ValueError("weekly schedule requires day_of_week")
        elif self.day_of_week is not None:
            raise ValueError("day_of_week is only allowed for weekly schedules")

        if self.frequency in ("monthly", "quarterly"):
            if self.day_of_month is None:
                raise ValueError(f"{self.frequency} schedule requires day_of_month")
        elif self.day_of_month is not None:
            raise ValueError("day_of_month is only allowed for monthly or quarterly schedules")
        return self

    @property
    def hour(self) -> int:
        return int(self.time.split(":")[0])

    @property
    def minute(self) -> int:
        return int(self.time.split(":")[1])


class Recipient(BaseModel):
    email: str = Field(..., max_length=255)
    name: Optional[str] = None
    kind: RecipientKind = "external"

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not _EMAIL_PATTERN.match(v):
            raise ValueError(f"Invalid email address '{v}'")
        return v


class ScheduledReportBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    dashboard_id: int
    schedule: ScheduleSpec
    recipients: List[Recipient] = Field(..., min_length=1)
    format: ReportFormat = "pdf"


class ScheduledReportCreate(ScheduledReportBase):
    is_active: bool = True


class ScheduledReportUpdate(PartialUpdate):
    non_nullable = ("name", "dashboard_id", "schedule", "recipients", "format")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    dashboard_id: Optional[int] = None
    schedule: Optional[ScheduleSpec] = None
    recipients: Optional[List[Recipient]] = Field(None, min_length=1)
    format: Optional[ReportFormat] = None


class ScheduledReport(ScheduledReportBase):
    id: int
    is_active: bool
    last_sent_at: Optional[datetime] = None
    next_send_at: datetime
    error_count: int = 0
    last_error: Optional[str] = None
    owner_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SweepSummary(BaseModel):
    """一次到期报表扫描的结果"""
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
