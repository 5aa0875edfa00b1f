"""
Accessors for service requests.
Reads and writes go through here so callers get typed errors and explicit write results.
"""

import logging
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, List, Optional, Tuple

from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import Session

from residence.config import get_config
from residence.database import get_session
from residence.db_models import ServiceRequestRecord
from residence.exceptions import (
    GuestSignOutError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    TransientError,
    UnknownStoreError,
)
from residence.lifecycle import parse_status, validate_transition
from residence.models import (
    Priority,
    RequestCategory,
    RequestStatus,
    ServiceRequest,
    StatusUpdateResult,
    VerifiedSession,
)
from residence.repositories import NotificationRepository, ServiceRequestRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[Session]]

# Category -> (notification title, how the request is named in the message)
NOTIFICATION_LABELS = {
    RequestCategory.COMPLAINT: ("Complaint Update", "complaint"),
    RequestCategory.MAINTENANCE: ("Maintenance Request Update", "maintenance request"),
    RequestCategory.SLEEPOVER: ("Sleepover Request Update", "sleepover request"),
}


def status_notification(
    category: RequestCategory, request_title: str, status: RequestStatus
) -> Tuple[str, str]:
    """Title and message telling a student their request changed status"""
    title, label = NOTIFICATION_LABELS[category]
    readable = status.value.replace("_", " ")
    return title, f'Your {label} "{request_title}" has been moved to {readable}'


def to_service_request(record: ServiceRequestRecord) -> ServiceRequest:
    """Convert a database row to the domain dataclass"""
    return ServiceRequest(
        id=record.id,
        category=RequestCategory(record.category),
        user_id=record.user_id,
        title=record.title,
        user_name=record.user_name,
        room_number=record.room_number,
        description=record.description,
        priority=Priority(record.priority.lower()),
        status=parse_status(record.status),
        details=record.details,
        admin_response=record.admin_response,
        created_at=record.created_at,
        updated_at=record.updated_at,
        is_active=record.is_active,
        sign_out_time=record.sign_out_time,
    )


def can_read(record: ServiceRequestRecord, principal: Optional[VerifiedSession]) -> bool:
    """Admins read everything, students read their own requests"""
    if principal is None:
        return False
    return principal.is_admin or record.user_id == principal.uid


class RequestStore:
    """Typed read/write surface over ServiceRequestRepository"""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory or get_session

    @contextmanager
    def _repository(self) -> Iterator[ServiceRequestRepository]:
        """Open a session and translate backend failures into StoreErrors"""
        try:
            with self.session_factory() as session:
                yield ServiceRequestRepository(session)
        except (OperationalError, DisconnectionError, PoolTimeoutError) as e:
            logger.warning(f"Transient database failure: {e}")
            raise TransientError("The request store is temporarily unavailable") from e
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            raise UnknownStoreError("The request store failed unexpectedly") from e

    def fetch(self, request_id: str, principal: Optional[VerifiedSession]) -> ServiceRequest:
        """
        Get a single request.

        Raises:
            NotFoundError: No request with this id
            PermissionDeniedError: Caller is neither an admin nor the owner
            TransientError: Backend temporarily unavailable
            UnknownStoreError: Any other backend failure
        """
        with self._repository() as repo:
            record = repo.get_request(request_id)
            if record is None:
                raise NotFoundError(f"Request {request_id} not found", request_id)
            if not can_read(record, principal):
                raise PermissionDeniedError(request_id)
            return to_service_request(record)

    def set_status(
        self,
        request_id: str,
        new_status: str,
        principal: Optional[VerifiedSession],
        admin_response: Optional[str] = None,
    ) -> StatusUpdateResult:
        """
        Move a request to a new status.

        Never raises for expected failures; the result says whether the
        write happened and why not.
        """
        try:
            if principal is None or not principal.is_admin:
                raise PermissionDeniedError(request_id)

            with self._repository() as repo:
                record = repo.get_request(request_id)
                if record is None:
                    raise NotFoundError(f"Request {request_id} not found", request_id)

                target = validate_transition(record.status, new_status)
                category = RequestCategory(record.category)
                title, message = status_notification(category, record.title, target)
                # Added without commit so it lands in the same transaction as the status
                NotificationRepository(repo.session).create(
                    user_id=record.user_id,
                    title=title,
                    message=message,
                    type=category.value,
                    commit=False,
                )
                activates_guest = (
                    category == RequestCategory.SLEEPOVER and target == RequestStatus.COMPLETED
                )
                repo.update_status(
                    request_id,
                    target.value,
                    admin_response,
                    is_active=True if activates_guest else None,
                )
        except InvalidTransitionError as e:
            logger.warning(f"Rejected status change for {request_id}: {e}")
            return StatusUpdateResult.failure(request_id, "invalid_transition", str(e))
        except StoreError as e:
            logger.warning(f"Status update for {request_id} failed ({e.kind}): {e.message}")
            return StatusUpdateResult.failure(request_id, e.kind, e.message)

        logger.info(f"Request {request_id} moved to {target.value} by {principal.uid}")
        return StatusUpdateResult.success(request_id, target)

    def submit(
        self,
        category: RequestCategory,
        principal: VerifiedSession,
        title: str,
        user_name: str,
        room_number: str = "",
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        details: str = "",
    ) -> ServiceRequest:
        """Create a new pending request owned by the caller"""
        with self._repository() as repo:
            record = repo.create_request(
                category=RequestCategory(category).value,
                user_id=principal.uid,
                title=title,
                user_name=user_name,
                room_number=room_number,
                description=description,
                priority=Priority(priority).value,
                details=details or title,
                status=RequestStatus.PENDING.value,
            )
            logger.info(f"New {record.category} request {record.id} from {principal.uid}")
            return to_service_request(record)

    def sign_out_guest(
        self,
        request_id: str,
        security_code: str,
        principal: Optional[VerifiedSession],
        expected_code: Optional[str] = None,
    ) -> ServiceRequest:
        """
        Sign a sleepover guest out.

        The request owner or an admin may sign out; the guest must be active
        (approved and not yet signed out) and the residence security code must
        match.

        Raises:
            NotFoundError: No request with this id
            PermissionDeniedError: Caller is neither an admin nor the owner
            GuestSignOutError: Not a sleepover, guest not active, or wrong code
        """
        expected_code = expected_code or get_config().guest_signout_code

        with self._repository() as repo:
            record = repo.get_request(request_id)
            if record is None:
                raise NotFoundError(f"Request {request_id} not found", request_id)
            if not can_read(record, principal):
                raise PermissionDeniedError(request_id)
            if record.category != RequestCategory.SLEEPOVER.value:
                raise GuestSignOutError("not_sleepover", "Only sleepover guests can be signed out")
            if not record.is_active:
                raise GuestSignOutError("not_active", "Guest is not currently active")
            if security_code != expected_code:
                logger.warning(f"Wrong security code for guest sign-out on {request_id}")
                raise GuestSignOutError("invalid_code", "Invalid security code")

            record = repo.mark_signed_out(request_id)
            logger.info(f"Guest for sleepover {request_id} signed out by {principal.uid}")
            return to_service_request(record)

    def list_for(
        self,
        principal: VerifiedSession,
        category: Optional[RequestCategory] = None,
        status: Optional[RequestStatus] = None,
    ) -> List[ServiceRequest]:
        """Requests visible to the caller, newest first"""
        with self._repository() as repo:
            records = repo.list_requests(
                user_id=None if principal.is_admin else principal.uid,
                category=RequestCategory(category).value if category else None,
                status=RequestStatus(status).value if status else None,
            )
            return [to_service_request(r) for r in records]
