"""
Per-user notifications.
Rows are written by RequestStore.set_status; this service lists them and marks them read.
"""

import logging
from typing import List, Optional

from residence.database import get_session
from residence.db_models import NotificationRecord
from residence.exceptions import NotFoundError, PermissionDeniedError
from residence.models import Notification, VerifiedSession
from residence.repositories import NotificationRepository
from residence.services.request_store import SessionFactory

logger = logging.getLogger(__name__)


def to_notification(record: NotificationRecord) -> Notification:
    return Notification(
        id=record.id,
        user_id=record.user_id,
        title=record.title,
        message=record.message,
        type=record.type,
        read=record.read,
        created_at=record.created_at,
    )


class NotificationService:
    """List and acknowledge the caller's own notifications"""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory or get_session

    def list_for(self, principal: VerifiedSession, unread_only: bool = False) -> List[Notification]:
        """The caller's notifications, newest first"""
        with self.session_factory() as session:
            records = NotificationRepository(session).list_for_user(principal.uid, unread_only)
            return [to_notification(r) for r in records]

    def unread_count(self, principal: VerifiedSession) -> int:
        return len(self.list_for(principal, unread_only=True))

    def mark_read(self, principal: VerifiedSession, notification_id: str) -> Notification:
        """
        Mark one notification read.

        Raises:
            NotFoundError: No notification with this id
            PermissionDeniedError: The notification belongs to someone else
        """
        with self.session_factory() as session:
            repo = NotificationRepository(session)
            record = repo.get(notification_id)
            if record is None:
                raise NotFoundError(f"Notification {notification_id} not found")
            if record.user_id != principal.uid:
                raise PermissionDeniedError()
            return to_notification(repo.mark_read(notification_id))

    def mark_all_read(self, principal: VerifiedSession) -> int:
        with self.session_factory() as session:
            changed = NotificationRepository(session).mark_all_read(principal.uid)
        logger.info(f"Marked {changed} notifications read for {principal.uid}")
        return changed
