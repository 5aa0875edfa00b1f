"""
Tests for domain dataclasses and database models
"""

import pytest
from datetime import datetime, timedelta, timezone

from sqlalchemy import DateTime
from sqlmodel import Session

from residence.db_models import (
    AnnouncementRecord,
    NotificationRecord,
    ServiceRequestRecord,
    UserProfile,
    utcnow,
)
from residence.models import (
    Announcement,
    AnnouncementStatus,
    CategoryDetail,
    Priority,
    ReportItem,
    ReportStatus,
    Role,
    StatusUpdateResult,
    StoredAnnouncement,
    Timestamp,
    VerifiedSession,
)


class TestPriority:
    """Tests for Priority ordering"""

    def test_ordering(self):
        """Test low < medium < high"""
        assert Priority.LOW < Priority.MEDIUM < Priority.HIGH
        assert Priority.HIGH > Priority.LOW
        assert Priority.MEDIUM >= Priority.MEDIUM

    def test_sorting(self):
        """Test priorities sort by rank, not alphabetically"""
        assert sorted([Priority.HIGH, Priority.LOW, Priority.MEDIUM]) == [
            Priority.LOW,
            Priority.MEDIUM,
            Priority.HIGH,
        ]

    def test_value_lookup(self):
        assert Priority("high") is Priority.HIGH


class TestTimestamp:
    """Tests for the storage-form timestamp codec"""

    def test_to_datetime(self):
        ts = Timestamp(seconds=1700000000, nanoseconds=500_000_000)
        value = ts.to_datetime()
        assert value == datetime(2023, 11, 14, 22, 13, 20, 500000, tzinfo=timezone.utc)

    def test_from_naive_datetime_assumes_utc(self):
        ts = Timestamp.from_datetime(datetime(1970, 1, 2))
        assert ts == Timestamp(seconds=86400, nanoseconds=0)

    def test_round_trip_keeps_seconds(self):
        """Test storage -> datetime -> storage preserves the seconds component"""
        for seconds in (0, 1, 1700000000, 4102444800):
            original = Timestamp(seconds=seconds, nanoseconds=123456789)
            restored = Timestamp.from_datetime(original.to_datetime())
            assert restored.seconds == original.seconds
            assert restored.nanoseconds == 123456000  # microsecond precision


class TestAnnouncementForms:
    """Tests for application form <-> storage form conversion"""

    def _announcement(self, **overrides):
        values = dict(
            id="a1",
            title="Water outage",
            content="No water on Friday morning",
            created_at=datetime(2025, 3, 14, 8, 0, tzinfo=timezone.utc),
            created_by="admin-1",
            created_by_name="Warden",
            priority=Priority.HIGH,
        )
        values.update(overrides)
        return Announcement(**values)

    def test_round_trip(self):
        announcement = self._announcement(
            expires_at=datetime(2025, 3, 15, 8, 0, tzinfo=timezone.utc)
        )
        stored = StoredAnnouncement.from_announcement(announcement)

        assert stored.created_at.seconds == int(announcement.created_at.timestamp())
        assert stored.to_announcement() == announcement

    def test_without_expiry(self):
        stored = StoredAnnouncement.from_announcement(self._announcement())
        assert stored.expires_at is None
        assert stored.to_announcement().expires_at is None

    def test_visibility(self):
        now = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)
        assert self._announcement().is_visible(now)
        assert not self._announcement(status=AnnouncementStatus.ARCHIVED).is_visible(now)
        assert not self._announcement(expires_at=now - timedelta(minutes=1)).is_visible(now)
        assert self._announcement(expires_at=now + timedelta(minutes=1)).is_visible(now)


class TestSmallModels:
    def test_verified_session_roles(self):
        assert VerifiedSession(uid="a", role=Role.ADMIN).is_admin
        assert not VerifiedSession(uid="s").is_admin

    def test_status_update_result_constructors(self):
        ok = StatusUpdateResult.success("r1", "completed")
        assert ok.ok and ok.reason is None

        failed = StatusUpdateResult.failure("r1", "not_found", "Request r1 not found")
        assert not failed.ok
        assert failed.status is None
        assert failed.reason == "not_found"

    def test_category_detail_counts(self):
        block = CategoryDetail(
            total=1,
            pending=1,
            items=[ReportItem("r1", "Thandi", datetime(2025, 3, 14), ReportStatus.PENDING, "")],
        )
        assert block.count_for(ReportStatus.PENDING) == 1
        assert block.count_for(ReportStatus.RESOLVED) == 0


class TestDatabaseModels:
    """Tests for SQLModel tables"""

    def test_service_request_defaults(self, db_session):
        """Test a request gets an id, pending status and timestamps"""
        record = ServiceRequestRecord(
            category="complaint", user_id="student-1", title="Noise", user_name="Thandi"
        )
        db_session.add(record)
        db_session.commit()

        assert record.id
        assert record.status == "pending"
        assert record.priority == "medium"
        assert record.created_at is not None

    def test_generated_ids_are_unique(self, db_session):
        first = ServiceRequestRecord(category="complaint", user_id="u", title="a", user_name="n")
        second = ServiceRequestRecord(category="complaint", user_id="u", title="b", user_name="n")
        db_session.add_all([first, second])
        db_session.commit()
        assert first.id != second.id

    def test_user_unique_uid(self, db_session):
        """Test uid must be unique"""
        db_session.add(UserProfile(uid="u1", email="a@campus.ac.za"))
        db_session.commit()

        db_session.add(UserProfile(uid="u1", email="b@campus.ac.za"))
        with pytest.raises(Exception):  # IntegrityError
            db_session.commit()

    def test_announcement_storage_columns(self, db_session):
        record = AnnouncementRecord(
            title="Fire drill",
            content="Assemble at the gate",
            created_at_seconds=1700000000,
            created_at_nanoseconds=42,
            created_by="admin-1",
            created_by_name="Warden",
        )
        db_session.add(record)
        db_session.commit()
        db_session.refresh(record)

        assert record.status == "active"
        assert record.expires_at_seconds is None
        assert record.created_at_nanoseconds == 42

    def test_timestamp_columns_are_naive(self):
        """Test every datetime column declares naive storage"""
        for table in (UserProfile, ServiceRequestRecord, NotificationRecord):
            for column in table.__table__.columns:
                if isinstance(column.type, DateTime):
                    assert column.type.timezone is False, f"{table.__tablename__}.{column.name}"

    def test_naive_utc_round_trip(self, db_engine):
        """Test naive UTC values are written and read back unchanged"""
        created = datetime(2025, 3, 14, 10, 30, 15, 123456)
        with Session(db_engine) as session:
            session.add(UserProfile(uid="u1", email="a@campus.ac.za"))
            session.add(
                ServiceRequestRecord(
                    id="r1",
                    category="sleepover",
                    user_id="u1",
                    title="Guest",
                    user_name="Thandi",
                    created_at=created,
                    updated_at=created,
                    sign_out_time=created,
                )
            )
            session.commit()

        with Session(db_engine) as session:
            record = session.get(ServiceRequestRecord, "r1")
            profile = session.get(UserProfile, "u1")

            assert record.created_at == created
            assert record.sign_out_time == created
            assert record.created_at.tzinfo is None
            assert profile.created_at.tzinfo is None
            assert profile.created_at <= utcnow()
