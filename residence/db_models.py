"""
Database models using SQLModel
Provides type-safe ORM with Pydantic validation
"""

import uuid
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime, timezone

# All timestamp columns hold naive UTC values
UTC_DATETIME = DateTime(timezone=False)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite hands back"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


class UserProfile(SQLModel, table=True):
    """Local profile for an identity-service account; the only source of a user's role"""

    __tablename__ = "users"

    uid: str = Field(primary_key=True, max_length=128)
    email: str = Field(max_length=255, index=True)
    role: str = Field(default="student", max_length=20)
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    room_number: Optional[str] = Field(default=None, max_length=20)
    tenant_code: Optional[str] = Field(default=None, max_length=50)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)


class ServiceRequestRecord(SQLModel, table=True):
    """Maintenance, sleepover or complaint request"""

    __tablename__ = "service_requests"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    category: str = Field(max_length=20, index=True)
    user_id: str = Field(max_length=128, index=True)
    title: str = Field(max_length=255)
    user_name: str = Field(max_length=255)
    room_number: str = Field(default="", max_length=20)
    description: str = Field(default="")
    priority: str = Field(default="medium", max_length=10)
    status: str = Field(default="pending", max_length=20, index=True)
    details: str = Field(default="")  # one-line summary shown in reports
    admin_response: Optional[str] = Field(default=None)

    # Sleepover guests: active from approval until signed out
    is_active: bool = Field(default=False)
    sign_out_time: Optional[datetime] = Field(default=None, sa_type=UTC_DATETIME)

    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=UTC_DATETIME)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)


class NotificationRecord(SQLModel, table=True):
    """Message shown to a student, e.g. after a status change on one of their requests"""

    __tablename__ = "notifications"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    user_id: str = Field(max_length=128, index=True)
    title: str = Field(max_length=255)
    message: str
    type: str = Field(max_length=20)
    read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=UTC_DATETIME)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTC_DATETIME)


class AnnouncementRecord(SQLModel, table=True):
    """Announcement in storage form: timestamps as seconds + nanoseconds"""

    __tablename__ = "announcements"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    title: str = Field(max_length=255)
    content: str
    created_at_seconds: int = Field(index=True)
    created_at_nanoseconds: int = Field(default=0)
    created_by: str = Field(max_length=128)
    created_by_name: str = Field(max_length=255)
    priority: str = Field(default="medium", max_length=10)
    status: str = Field(default="active", max_length=10, index=True)
    expires_at_seconds: Optional[int] = Field(default=None)
    expires_at_nanoseconds: Optional[int] = Field(default=None)
