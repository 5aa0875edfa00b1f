"""
Repository pattern for database access
Provides clean separation between business logic and data access
"""

from sqlmodel import Session, select
from typing import List, Optional
from datetime import datetime

from residence.db_models import (
    AnnouncementRecord,
    NotificationRecord,
    ServiceRequestRecord,
    UserProfile,
    utcnow,
)


class UserRepository:
    """Repository for UserProfile operations"""

    def __init__(self, session: Session):
        self.session = session

    def get_user(self, uid: str) -> Optional[UserProfile]:
        """Get user by identity-service uid"""
        return self.session.get(UserProfile, uid)

    def create_user(
        self,
        uid: str,
        email: str,
        role: str = "student",
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone_number: Optional[str] = None,
        room_number: Optional[str] = None,
        tenant_code: Optional[str] = None,
    ) -> UserProfile:
        """Create new user profile"""
        user = UserProfile(
            uid=uid,
            email=email,
            role=role,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            room_number=room_number,
            tenant_code=tenant_code,
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_all_users(self) -> List[UserProfile]:
        """Get all users"""
        statement = select(UserProfile)
        return list(self.session.exec(statement))


class ServiceRequestRepository:
    """Repository for ServiceRequestRecord operations"""

    def __init__(self, session: Session):
        self.session = session

    def create_request(
        self,
        category: str,
        user_id: str,
        title: str,
        user_name: str,
        room_number: str = "",
        description: str = "",
        priority: str = "medium",
        details: str = "",
        status: str = "pending",
        created_at: Optional[datetime] = None,
        request_id: Optional[str] = None,
    ) -> ServiceRequestRecord:
        """Insert a new request"""
        record = ServiceRequestRecord(
            category=category,
            user_id=user_id,
            title=title,
            user_name=user_name,
            room_number=room_number,
            description=description,
            priority=priority,
            details=details,
            status=status,
        )
        if request_id:
            record.id = request_id
        if created_at:
            record.created_at = created_at
            record.updated_at = created_at
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def get_request(self, request_id: str) -> Optional[ServiceRequestRecord]:
        """Get request by ID"""
        return self.session.get(ServiceRequestRecord, request_id)

    def list_requests(
        self,
        user_id: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[ServiceRequestRecord]:
        """List requests newest first, optionally filtered"""
        statement = select(ServiceRequestRecord).order_by(
            ServiceRequestRecord.created_at.desc()
        )
        if user_id:
            statement = statement.where(ServiceRequestRecord.user_id == user_id)
        if category:
            statement = statement.where(ServiceRequestRecord.category == category)
        if status:
            statement = statement.where(ServiceRequestRecord.status == status)
        return list(self.session.exec(statement))

    def list_created_between(
        self, category: str, start: datetime, end: datetime
    ) -> List[ServiceRequestRecord]:
        """Requests of one category created in [start, end], oldest first"""
        statement = (
            select(ServiceRequestRecord)
            .where(
                ServiceRequestRecord.category == category,
                ServiceRequestRecord.created_at >= start,
                ServiceRequestRecord.created_at <= end,
            )
            .order_by(ServiceRequestRecord.created_at, ServiceRequestRecord.id)
        )
        return list(self.session.exec(statement))

    def update_status(
        self,
        request_id: str,
        status: str,
        admin_response: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ServiceRequestRecord]:
        """Write a status without any lifecycle check"""
        record = self.get_request(request_id)
        if not record:
            return None

        record.status = status
        if admin_response is not None:
            record.admin_response = admin_response
        if is_active is not None:
            record.is_active = is_active
        record.updated_at = utcnow()
        self.session.commit()
        self.session.refresh(record)
        return record

    def mark_signed_out(self, request_id: str) -> Optional[ServiceRequestRecord]:
        """Deactivate a sleepover guest and stamp the sign-out time"""
        record = self.get_request(request_id)
        if not record:
            return None

        now = utcnow()
        record.is_active = False
        record.sign_out_time = now
        record.updated_at = now
        self.session.commit()
        self.session.refresh(record)
        return record


class NotificationRepository:
    """Repository for NotificationRecord operations"""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self, user_id: str, title: str, message: str, type: str, commit: bool = True
    ) -> NotificationRecord:
        """
        Store a new unread notification

        With commit=False the row is only added to the session and is written
        by the caller's next commit.
        """
        record = NotificationRecord(user_id=user_id, title=title, message=message, type=type)
        self.session.add(record)
        if commit:
            self.session.commit()
            self.session.refresh(record)
        return record

    def get(self, notification_id: str) -> Optional[NotificationRecord]:
        return self.session.get(NotificationRecord, notification_id)

    def list_for_user(self, user_id: str, unread_only: bool = False) -> List[NotificationRecord]:
        """A user's notifications, newest first"""
        statement = (
            select(NotificationRecord)
            .where(NotificationRecord.user_id == user_id)
            .order_by(NotificationRecord.created_at.desc(), NotificationRecord.id)
        )
        if unread_only:
            statement = statement.where(NotificationRecord.read == False)  # noqa: E712
        return list(self.session.exec(statement))

    def mark_read(self, notification_id: str) -> Optional[NotificationRecord]:
        record = self.get(notification_id)
        if not record:
            return None

        record.read = True
        record.updated_at = utcnow()
        self.session.commit()
        self.session.refresh(record)
        return record

    def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of a user as read, returning how many changed"""
        records = self.list_for_user(user_id, unread_only=True)
        now = utcnow()
        for record in records:
            record.read = True
            record.updated_at = now
        self.session.commit()
        return len(records)


class AnnouncementRepository:
    """Repository for AnnouncementRecord operations"""

    def __init__(self, session: Session):
        self.session = session

    def get(self, announcement_id: str) -> Optional[AnnouncementRecord]:
        return self.session.get(AnnouncementRecord, announcement_id)

    def list_all(self, status: Optional[str] = None) -> List[AnnouncementRecord]:
        """Announcements newest first"""
        statement = select(AnnouncementRecord).order_by(
            AnnouncementRecord.created_at_seconds.desc(),
            AnnouncementRecord.created_at_nanoseconds.desc(),
        )
        if status:
            statement = statement.where(AnnouncementRecord.status == status)
        return list(self.session.exec(statement))

    def save(self, record: AnnouncementRecord) -> AnnouncementRecord:
        """Insert or update"""
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def delete(self, announcement_id: str) -> bool:
        record = self.get(announcement_id)
        if record:
            self.session.delete(record)
            self.session.commit()
            return True
        return False
