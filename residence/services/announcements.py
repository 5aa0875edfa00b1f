"""
Announcement management.
Announcements are stored with (seconds, nanoseconds) timestamps and handed out with datetimes.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from residence.database import get_session
from residence.db_models import AnnouncementRecord
from residence.exceptions import NotFoundError, PermissionDeniedError
from residence.models import (
    Announcement,
    AnnouncementStatus,
    Priority,
    StoredAnnouncement,
    Timestamp,
    VerifiedSession,
)
from residence.repositories import AnnouncementRepository
from residence.services.request_store import SessionFactory

logger = logging.getLogger(__name__)


def record_to_stored(record: AnnouncementRecord) -> StoredAnnouncement:
    expires_at = None
    if record.expires_at_seconds is not None:
        expires_at = Timestamp(record.expires_at_seconds, record.expires_at_nanoseconds or 0)
    return StoredAnnouncement(
        id=record.id,
        title=record.title,
        content=record.content,
        created_at=Timestamp(record.created_at_seconds, record.created_at_nanoseconds),
        created_by=record.created_by,
        created_by_name=record.created_by_name,
        priority=Priority(record.priority),
        status=AnnouncementStatus(record.status),
        expires_at=expires_at,
    )


def apply_stored(record: AnnouncementRecord, stored: StoredAnnouncement) -> AnnouncementRecord:
    """Copy a storage-form announcement onto a row"""
    record.title = stored.title
    record.content = stored.content
    record.created_at_seconds = stored.created_at.seconds
    record.created_at_nanoseconds = stored.created_at.nanoseconds
    record.created_by = stored.created_by
    record.created_by_name = stored.created_by_name
    record.priority = Priority(stored.priority).value
    record.status = AnnouncementStatus(stored.status).value
    record.expires_at_seconds = stored.expires_at.seconds if stored.expires_at else None
    record.expires_at_nanoseconds = stored.expires_at.nanoseconds if stored.expires_at else None
    return record


def check_expiry(created_at: datetime, expires_at: Optional[datetime]) -> None:
    if expires_at is not None and _aware(expires_at) < _aware(created_at):
        raise ValueError("expires_at must not be earlier than created_at")


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _require_admin(principal: Optional[VerifiedSession]) -> None:
    if principal is None or not principal.is_admin:
        raise PermissionDeniedError()


class AnnouncementService:
    """Create, list, update, archive and delete announcements"""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory or get_session

    def create(
        self,
        principal: VerifiedSession,
        title: str,
        content: str,
        priority: Priority = Priority.MEDIUM,
        expires_at: Optional[datetime] = None,
        created_by_name: Optional[str] = None,
    ) -> Announcement:
        """Publish a new active announcement authored by the caller"""
        _require_admin(principal)
        now = datetime.now(timezone.utc)
        check_expiry(now, expires_at)

        stored = StoredAnnouncement.from_announcement(
            Announcement(
                id="",
                title=title,
                content=content,
                created_at=now,
                created_by=principal.uid,
                created_by_name=created_by_name or principal.email or "Unknown Admin",
                priority=Priority(priority),
                status=AnnouncementStatus.ACTIVE,
                expires_at=_aware(expires_at) if expires_at else None,
            )
        )

        with self.session_factory() as session:
            repo = AnnouncementRepository(session)
            record = repo.save(apply_stored(AnnouncementRecord(), stored))
            logger.info(f"Announcement {record.id} created by {principal.uid}")
            return record_to_stored(record).to_announcement()

    def list_all(self) -> List[Announcement]:
        """All announcements, newest first"""
        with self.session_factory() as session:
            records = AnnouncementRepository(session).list_all()
            return [record_to_stored(r).to_announcement() for r in records]

    def list_visible(self, now: Optional[datetime] = None) -> List[Announcement]:
        """Active, unexpired announcements, newest first"""
        with self.session_factory() as session:
            records = AnnouncementRepository(session).list_all(
                status=AnnouncementStatus.ACTIVE.value
            )
            announcements = [record_to_stored(r).to_announcement() for r in records]
        return [a for a in announcements if a.is_visible(now)]

    def update(
        self,
        principal: VerifiedSession,
        announcement_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        priority: Optional[Priority] = None,
        status: Optional[AnnouncementStatus] = None,
        expires_at: Optional[datetime] = None,
    ) -> Announcement:
        """Change selected fields of an announcement"""
        _require_admin(principal)

        with self.session_factory() as session:
            repo = AnnouncementRepository(session)
            record = repo.get(announcement_id)
            if record is None:
                raise NotFoundError(f"Announcement {announcement_id} not found", announcement_id)

            announcement = record_to_stored(record).to_announcement()
            if title is not None:
                announcement.title = title
            if content is not None:
                announcement.content = content
            if priority is not None:
                announcement.priority = Priority(priority)
            if status is not None:
                announcement.status = AnnouncementStatus(status)
            if expires_at is not None:
                check_expiry(announcement.created_at, expires_at)
                announcement.expires_at = _aware(expires_at)

            record = repo.save(apply_stored(record, StoredAnnouncement.from_announcement(announcement)))
            return record_to_stored(record).to_announcement()

    def archive(self, principal: VerifiedSession, announcement_id: str) -> Announcement:
        return self.update(principal, announcement_id, status=AnnouncementStatus.ARCHIVED)

    def delete(self, principal: VerifiedSession, announcement_id: str) -> None:
        _require_admin(principal)
        with self.session_factory() as session:
            if not AnnouncementRepository(session).delete(announcement_id):
                raise NotFoundError(f"Announcement {announcement_id} not found", announcement_id)
        logger.info(f"Announcement {announcement_id} deleted by {principal.uid}")
