"""
Tests for repository layer (data access layer)
"""

from datetime import datetime

from residence.db_models import AnnouncementRecord
from residence.repositories import (
    AnnouncementRepository,
    NotificationRepository,
    ServiceRequestRepository,
    UserRepository,
)


class TestUserRepository:
    """Tests for UserRepository"""

    def test_create_user(self, db_session):
        """Test creating a new user profile"""
        repo = UserRepository(db_session)
        user = repo.create_user(
            uid="u1",
            email="thandi@campus.ac.za",
            first_name="Thandi",
            last_name="Mokoena",
            room_number="B12",
            tenant_code="RES-042",
        )

        assert user.uid == "u1"
        assert user.role == "student"
        assert user.room_number == "B12"
        assert user.tenant_code == "RES-042"

    def test_get_user_not_found(self, db_session):
        """Test retrieving non-existent user returns None"""
        assert UserRepository(db_session).get_user("missing") is None

    def test_get_all_users(self, db_session):
        repo = UserRepository(db_session)
        repo.create_user(uid="u1", email="a@campus.ac.za")
        repo.create_user(uid="u2", email="b@campus.ac.za")

        assert {u.uid for u in repo.get_all_users()} == {"u1", "u2"}


class TestServiceRequestRepository:
    """Tests for ServiceRequestRepository"""

    def _create(self, repo, **overrides):
        values = dict(category="maintenance", user_id="u1", title="Broken bed", user_name="Thandi")
        values.update(overrides)
        return repo.create_request(**values)

    def test_create_request(self, db_session):
        repo = ServiceRequestRepository(db_session)
        record = self._create(repo, request_id="r1", priority="high")

        assert record.id == "r1"
        assert record.status == "pending"
        assert record.priority == "high"

    def test_get_request_not_found(self, db_session):
        assert ServiceRequestRepository(db_session).get_request("nope") is None

    def test_list_requests_newest_first(self, db_session):
        repo = ServiceRequestRepository(db_session)
        self._create(repo, request_id="old", created_at=datetime(2025, 1, 1))
        self._create(repo, request_id="new", created_at=datetime(2025, 2, 1))

        assert [r.id for r in repo.list_requests()] == ["new", "old"]

    def test_list_requests_filters(self, db_session):
        repo = ServiceRequestRepository(db_session)
        self._create(repo, request_id="a", user_id="u1", category="complaint")
        self._create(repo, request_id="b", user_id="u2", category="complaint", status="denied")
        self._create(repo, request_id="c", user_id="u1", category="sleepover")

        assert {r.id for r in repo.list_requests(user_id="u1")} == {"a", "c"}
        assert {r.id for r in repo.list_requests(category="complaint")} == {"a", "b"}
        assert [r.id for r in repo.list_requests(status="denied")] == ["b"]

    def test_list_created_between(self, db_session):
        """Test the day window is inclusive and category-scoped"""
        repo = ServiceRequestRepository(db_session)
        self._create(repo, request_id="before", created_at=datetime(2025, 3, 13, 23, 59, 59))
        self._create(repo, request_id="start", created_at=datetime(2025, 3, 14, 0, 0, 0))
        self._create(repo, request_id="late", created_at=datetime(2025, 3, 14, 23, 59, 59))
        self._create(repo, request_id="other", category="complaint", created_at=datetime(2025, 3, 14, 12))
        self._create(repo, request_id="after", created_at=datetime(2025, 3, 15, 0, 0, 0))

        records = repo.list_created_between(
            "maintenance", datetime(2025, 3, 14), datetime(2025, 3, 14, 23, 59, 59, 999999)
        )
        assert [r.id for r in records] == ["start", "late"]

    def test_update_status_writes_anything(self, db_session):
        """Test the repository itself performs no lifecycle check"""
        repo = ServiceRequestRepository(db_session)
        self._create(repo, request_id="r1", status="completed")

        record = repo.update_status("r1", "pending", admin_response="Reopened")
        assert record.status == "pending"
        assert record.admin_response == "Reopened"
        assert record.updated_at >= record.created_at

    def test_update_status_not_found(self, db_session):
        assert ServiceRequestRepository(db_session).update_status("nope", "denied") is None

    def test_update_status_can_activate(self, db_session):
        repo = ServiceRequestRepository(db_session)
        self._create(repo, request_id="s1", category="sleepover", status="in_progress")

        assert repo.update_status("s1", "completed").is_active is False
        assert repo.update_status("s1", "completed", is_active=True).is_active is True

    def test_mark_signed_out(self, db_session):
        repo = ServiceRequestRepository(db_session)
        self._create(repo, request_id="s1", category="sleepover")
        repo.update_status("s1", "completed", is_active=True)

        record = repo.mark_signed_out("s1")

        assert record.is_active is False
        assert record.sign_out_time is not None
        assert repo.mark_signed_out("nope") is None


class TestAnnouncementRepository:
    """Tests for AnnouncementRepository"""

    def _record(self, title, seconds, status="active"):
        return AnnouncementRecord(
            title=title,
            content="...",
            created_at_seconds=seconds,
            created_by="admin-1",
            created_by_name="Warden",
            status=status,
        )

    def test_save_and_get(self, db_session):
        repo = AnnouncementRepository(db_session)
        record = repo.save(self._record("Fire drill", 100))
        assert repo.get(record.id).title == "Fire drill"

    def test_list_newest_first_and_filter(self, db_session):
        repo = AnnouncementRepository(db_session)
        repo.save(self._record("first", 100))
        repo.save(self._record("second", 200))
        repo.save(self._record("archived", 300, status="archived"))

        assert [r.title for r in repo.list_all()] == ["archived", "second", "first"]
        assert [r.title for r in repo.list_all(status="active")] == ["second", "first"]

    def test_delete(self, db_session):
        repo = AnnouncementRepository(db_session)
        record = repo.save(self._record("Fire drill", 100))

        assert repo.delete(record.id) is True
        assert repo.get(record.id) is None
        assert repo.delete(record.id) is False


class TestNotificationRepository:
    """Tests for NotificationRepository"""

    def test_create_and_list_newest_first(self, db_session):
        repo = NotificationRepository(db_session)
        first = repo.create("u1", "Complaint Update", "first", "complaint")
        first.created_at = datetime(2025, 3, 14, 8)
        db_session.commit()
        repo.create("u1", "Complaint Update", "second", "complaint")
        repo.create("u2", "Complaint Update", "someone else", "complaint")

        assert [n.message for n in repo.list_for_user("u1")] == ["second", "first"]
        assert first.read is False

    def test_create_without_commit_joins_callers_transaction(self, db_session):
        repo = NotificationRepository(db_session)
        repo.create("u1", "t", "pending write", "maintenance", commit=False)
        db_session.rollback()

        assert repo.list_for_user("u1") == []

    def test_mark_read(self, db_session):
        repo = NotificationRepository(db_session)
        record = repo.create("u1", "t", "m", "sleepover")

        assert repo.mark_read(record.id).read is True
        assert repo.list_for_user("u1", unread_only=True) == []
        assert repo.mark_read("nope") is None

    def test_mark_all_read(self, db_session):
        repo = NotificationRepository(db_session)
        repo.create("u1", "t", "a", "complaint")
        repo.create("u1", "t", "b", "complaint")
        repo.create("u2", "t", "c", "complaint")

        assert repo.mark_all_read("u1") == 2
        assert repo.list_for_user("u1", unread_only=True) == []
        assert len(repo.list_for_user("u2", unread_only=True)) == 1
