"""
Type-safe data models for the portal
Uses dataclasses and enums for better type safety and IDE support
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional


class RequestCategory(str, Enum):
    """Kinds of student requests"""
    MAINTENANCE = "maintenance"
    SLEEPOVER = "sleepover"
    COMPLAINT = "complaint"


class RequestStatus(str, Enum):
    """Canonical service request status"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DENIED = "denied"


class ReportStatus(str, Enum):
    """Status buckets used by daily reports"""
    RESOLVED = "resolved"
    DENIED = "denied"
    PENDING = "pending"


class Priority(str, Enum):
    """Request and announcement priority, ordered low < medium < high"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank >= other.rank


_PRIORITY_RANK = {Priority.LOW: 0, Priority.MEDIUM: 1, Priority.HIGH: 2}


class AnnouncementStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class Role(str, Enum):
    """Roles carried in a verified session"""
    STUDENT = "student"
    ADMIN = "admin"


@dataclass
class VerifiedSession:
    """Identity attached to a request after the session gate accepts it"""
    uid: str
    email: Optional[str] = None
    role: Role = Role.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass
class ServiceRequest:
    """A single maintenance, sleepover or complaint request"""
    id: str
    category: RequestCategory
    user_id: str
    title: str
    user_name: str
    room_number: str
    description: str
    priority: Priority
    status: RequestStatus
    details: str = ""
    admin_response: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_active: bool = False  # sleepover guest currently signed in
    sign_out_time: Optional[datetime] = None


@dataclass
class Notification:
    """Message for one user, shown in their notifications list"""
    id: str
    user_id: str
    title: str
    message: str
    type: str
    read: bool = False
    created_at: Optional[datetime] = None


@dataclass
class StatusUpdateResult:
    """Outcome of a status write; ok is False whenever nothing was written"""
    ok: bool
    request_id: str
    status: Optional[RequestStatus] = None
    reason: Optional[str] = None  # not_found, permission_denied, invalid_transition, transient, unknown
    message: str = ""

    @classmethod
    def success(cls, request_id: str, status: RequestStatus) -> "StatusUpdateResult":
        return cls(ok=True, request_id=request_id, status=status)

    @classmethod
    def failure(cls, request_id: str, reason: str, message: str) -> "StatusUpdateResult":
        return cls(ok=False, request_id=request_id, reason=reason, message=message)


@dataclass(frozen=True)
class Timestamp:
    """Storage-form timestamp: whole seconds since the epoch plus nanoseconds"""
    seconds: int
    nanoseconds: int = 0

    @classmethod
    def from_datetime(cls, value: datetime) -> "Timestamp":
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        delta = value - _EPOCH
        seconds = delta.days * 86400 + delta.seconds
        return cls(seconds=seconds, nanoseconds=delta.microseconds * 1000)

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.seconds, tz=timezone.utc).replace(
            microsecond=self.nanoseconds // 1000
        )


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class Announcement:
    """Application-form announcement with native datetimes"""
    id: str
    title: str
    content: str
    created_at: datetime
    created_by: str
    created_by_name: str
    priority: Priority = Priority.MEDIUM
    status: AnnouncementStatus = AnnouncementStatus.ACTIVE
    expires_at: Optional[datetime] = None

    def is_visible(self, now: Optional[datetime] = None) -> bool:
        """Active and not yet expired"""
        if self.status != AnnouncementStatus.ACTIVE:
            return False
        if self.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now <= self.expires_at


@dataclass
class StoredAnnouncement:
    """Storage-form announcement with (seconds, nanoseconds) timestamps"""
    id: str
    title: str
    content: str
    created_at: Timestamp
    created_by: str
    created_by_name: str
    priority: Priority = Priority.MEDIUM
    status: AnnouncementStatus = AnnouncementStatus.ACTIVE
    expires_at: Optional[Timestamp] = None

    def to_announcement(self) -> Announcement:
        return Announcement(
            id=self.id,
            title=self.title,
            content=self.content,
            created_at=self.created_at.to_datetime(),
            created_by=self.created_by,
            created_by_name=self.created_by_name,
            priority=self.priority,
            status=self.status,
            expires_at=self.expires_at.to_datetime() if self.expires_at else None,
        )

    @classmethod
    def from_announcement(cls, announcement: Announcement) -> "StoredAnnouncement":
        expires_at = announcement.expires_at
        return cls(
            id=announcement.id,
            title=announcement.title,
            content=announcement.content,
            created_at=Timestamp.from_datetime(announcement.created_at),
            created_by=announcement.created_by,
            created_by_name=announcement.created_by_name,
            priority=announcement.priority,
            status=announcement.status,
            expires_at=Timestamp.from_datetime(expires_at) if expires_at else None,
        )


@dataclass
class ReportItem:
    """One request row behind a report count"""
    id: str
    student_name: str
    date: datetime
    status: ReportStatus
    details: str


@dataclass
class CategoryCounts:
    total: int = 0
    resolved: int = 0
    denied: int = 0
    pending: int = 0

    def count_for(self, status: ReportStatus) -> int:
        return getattr(self, status.value)


@dataclass
class CategoryDetail(CategoryCounts):
    """Counts plus the ordered items that produced them"""
    items: List[ReportItem] = field(default_factory=list)


@dataclass
class DailyReport:
    date: date
    sleepovers: CategoryCounts
    maintenance: CategoryCounts
    complaints: CategoryCounts

    def categories(self):
        """Yield (name, block) pairs in display order"""
        yield "sleepovers", self.sleepovers
        yield "maintenance", self.maintenance
        yield "complaints", self.complaints


@dataclass
class DetailedReport(DailyReport):
    sleepovers: CategoryDetail
    maintenance: CategoryDetail
    complaints: CategoryDetail
