"""
Residence portal web application.
Wires the session gate, the JSON APIs and the HTML pages together.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from html import escape
from typing import Callable, Literal, Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, EmailStr
from sqlalchemy.exc import SQLAlchemyError

from residence.config import get_config
from residence.content import POLICIES, THANK_YOU
from residence.database import close_database, get_session, init_database
from residence.exceptions import (
    GuestSignOutError,
    IdentityError,
    PermissionDeniedError,
    StoreError,
)
from residence.gate import SessionGateMiddleware
from residence.models import (
    Priority,
    RequestCategory,
    RequestStatus,
    Role,
    VerifiedSession,
)
from residence.repositories import UserRepository
from residence.services.announcements import AnnouncementService
from residence.services.identity import (
    IdentityClient,
    ProfileSessionVerifier,
    cleanup_identity_client,
    get_identity_client,
)
from residence.services.notifications import NotificationService
from residence.services.reports import ReportService, report_to_dict, utc_today
from residence.services.request_store import RequestStore, SessionFactory
from residence.widgets import PolicySection, ThankYouMessage, UpdateStatus, ViewDetails

logger = logging.getLogger(__name__)

# StoreError.kind / StatusUpdateResult.reason -> HTTP status
ERROR_STATUS = {
    "not_found": 404,
    "permission_denied": 403,
    "invalid_transition": 409,
    "transient": 503,
    "unknown": 500,
}

# GuestSignOutError.reason -> HTTP status
SIGN_OUT_STATUS = {
    "invalid_code": 400,
    "not_active": 409,
    "not_sleepover": 409,
}


# ---------- Request Models ----------

class UserData(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    room_number: Optional[str] = None
    tenant_code: Optional[str] = None


class AuthRequest(BaseModel):
    action: str
    email: EmailStr
    password: str
    user_data: Optional[UserData] = None


class RequestCreate(BaseModel):
    category: Literal["maintenance", "sleepover", "complaint"]
    title: str
    description: str = ""
    room_number: str = ""
    priority: Literal["low", "medium", "high"] = "medium"
    details: str = ""
    user_name: Optional[str] = None


class StatusChange(BaseModel):
    status: str
    admin_response: Optional[str] = None


class GuestSignOut(BaseModel):
    security_code: str


class AnnouncementCreate(BaseModel):
    title: str
    content: str
    priority: Literal["low", "medium", "high"] = "medium"
    expires_at: Optional[datetime] = None


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    priority: Optional[Literal["low", "medium", "high"]] = None
    status: Optional[Literal["active", "archived"]] = None
    expires_at: Optional[datetime] = None


# ---------- Dependencies ----------

def current_session(request: Request) -> VerifiedSession:
    session = getattr(request.state, "session", None)
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


def require_admin(session: VerifiedSession = Depends(current_session)) -> VerifiedSession:
    if not session.is_admin:
        raise HTTPException(status_code=403, detail=PermissionDeniedError().message)
    return session


def get_request_store(request: Request) -> RequestStore:
    return request.app.state.request_store


def get_report_service(request: Request) -> ReportService:
    return request.app.state.report_service


def get_announcement_service(request: Request) -> AnnouncementService:
    return request.app.state.announcement_service


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def store_http_error(error: StoreError) -> HTTPException:
    return HTTPException(status_code=ERROR_STATUS.get(error.kind, 500), detail=error.message)


# ---------- HTML helpers ----------

def page(title: str, body: str) -> HTMLResponse:
    return HTMLResponse(
        "<!DOCTYPE html><html><head>"
        f"<meta charset=\"utf-8\"><title>{escape(title)}</title>"
        f"</head><body><main>{body}</main></body></html>"
    )


LOGIN_FORM = """
<h1>Sign in</h1>
<form id="login">
  <input name="email" type="email" placeholder="Email" required>
  <input name="password" type="password" placeholder="Password" required>
  <button type="submit">Sign in</button>
</form>
<script>
document.getElementById("login").addEventListener("submit", async (e) => {
  e.preventDefault();
  const form = new FormData(e.target);
  const res = await fetch("/api/auth", {
    method: "POST",
    headers: {"Content-Type": "application/json"},
    body: JSON.stringify({action: "login", email: form.get("email"), password: form.get("password")}),
  });
  if (res.ok) { window.location = "/dashboard"; }
});
</script>
"""


def create_app(
    request_store: Optional[RequestStore] = None,
    report_service: Optional[ReportService] = None,
    announcement_service: Optional[AnnouncementService] = None,
    notification_service: Optional[NotificationService] = None,
    identity_factory: Optional[Callable[[], IdentityClient]] = None,
    session_factory: Optional[SessionFactory] = None,
    manage_resources: bool = True,
) -> FastAPI:
    """
    Build the application.

    Every collaborator can be injected; defaults use the global database
    engine and the identity client singleton.
    """
    config = get_config()
    session_factory = session_factory or get_session
    identity_factory = identity_factory or get_identity_client

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_resources:
            init_database()
        yield
        if manage_resources:
            await cleanup_identity_client()
            close_database()

    app = FastAPI(title="Residence Portal", lifespan=lifespan)
    app.state.session_factory = session_factory
    app.state.identity_factory = identity_factory
    app.state.request_store = request_store or RequestStore(session_factory)
    app.state.report_service = report_service or ReportService(session_factory)
    app.state.announcement_service = announcement_service or AnnouncementService(session_factory)
    app.state.notification_service = notification_service or NotificationService(session_factory)

    app.add_middleware(
        SessionGateMiddleware,
        verifier_factory=lambda: ProfileSessionVerifier(identity_factory(), session_factory),
    )

    def display_name(principal: VerifiedSession) -> str:
        with session_factory() as session:
            profile = UserRepository(session).get_user(principal.uid)
            if profile and (profile.first_name or profile.last_name):
                return " ".join(p for p in (profile.first_name, profile.last_name) if p)
        return principal.email or principal.uid

    # ---------- Auth API ----------

    def create_profile(uid: str, email: str, user_data: UserData) -> None:
        with session_factory() as session:
            UserRepository(session).create_user(
                uid=uid, email=email, role=Role.STUDENT.value, **user_data.model_dump()
            )

    def login_user(uid: str, email: str) -> dict:
        with session_factory() as session:
            profile = UserRepository(session).get_user(uid)
            user = {"id": uid, "email": email, "role": Role.STUDENT.value}
            if profile:
                user.update(
                    role=profile.role,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    room_number=profile.room_number,
                    tenant_code=profile.tenant_code,
                )
            return user

    @app.post("/api/auth")
    async def authenticate(body: AuthRequest):
        identity = identity_factory()
        try:
            if body.action == "register":
                account = await identity.sign_up(body.email, body.password)
                try:
                    await run_in_threadpool(
                        create_profile, account["uid"], body.email, body.user_data or UserData()
                    )
                except SQLAlchemyError as e:
                    # TODO: delete the identity account once the identity API exposes account deletion
                    logger.error(
                        f"Profile for {account['uid']} could not be stored, identity account left without a profile: {e}"
                    )
                    return JSONResponse({"error": "Registration failed"}, status_code=400)
                logger.info(f"Registered user {account['uid']}")
                return {"success": True, "user_id": account["uid"]}

            if body.action == "login":
                account = await identity.sign_in(body.email, body.password)
                cookie = await identity.create_session_cookie(
                    account["id_token"], config.session_max_age_seconds
                )
                try:
                    user = await run_in_threadpool(login_user, account["uid"], body.email)
                except SQLAlchemyError as e:
                    logger.error(f"Profile lookup for {account['uid']} failed: {e}")
                    return JSONResponse({"error": "Authentication failed"}, status_code=400)

                response = JSONResponse({"success": True, "user": user})
                response.set_cookie(
                    config.session_cookie_name,
                    cookie,
                    max_age=config.session_max_age_seconds,
                    httponly=True,
                    secure=config.is_production,
                    path="/",
                )
                logger.info(f"User {account['uid']} signed in")
                return response
        except IdentityError as e:
            logger.warning(f"Auth {body.action} failed: {e.code}")
            return JSONResponse({"error": e.message or "Authentication failed"}, status_code=400)

        return JSONResponse({"error": "Invalid action"}, status_code=400)

    @app.delete("/api/auth")
    def logout():
        response = JSONResponse({"success": True})
        response.delete_cookie(config.session_cookie_name, path="/")
        return response

    # ---------- Request API ----------

    @app.post("/api/requests", status_code=201)
    def submit_request(
        body: RequestCreate,
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        try:
            created = store.submit(
                RequestCategory(body.category),
                session,
                title=body.title,
                user_name=body.user_name or display_name(session),
                room_number=body.room_number,
                description=body.description,
                priority=Priority(body.priority),
                details=body.details,
            )
        except StoreError as e:
            raise store_http_error(e)
        return {"success": True, "id": created.id}

    @app.get("/api/requests")
    def list_requests(
        category: Optional[RequestCategory] = None,
        status: Optional[RequestStatus] = None,
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        try:
            return {"requests": store.list_for(session, category=category, status=status)}
        except StoreError as e:
            raise store_http_error(e)

    @app.get("/api/requests/{request_id}")
    def get_request(
        request_id: str,
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        try:
            return store.fetch(request_id, session)
        except StoreError as e:
            raise store_http_error(e)

    @app.patch("/api/requests/{request_id}/status")
    def change_status(
        request_id: str,
        body: StatusChange,
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        result = store.set_status(request_id, body.status, session, body.admin_response)
        status_code = 200 if result.ok else ERROR_STATUS.get(result.reason, 500)
        return JSONResponse(
            {
                "ok": result.ok,
                "request_id": result.request_id,
                "status": result.status.value if result.status else None,
                "reason": result.reason,
                "message": result.message,
            },
            status_code=status_code,
        )

    @app.post("/api/requests/{request_id}/sign-out")
    def sign_out_guest(
        request_id: str,
        body: GuestSignOut,
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        try:
            request = store.sign_out_guest(request_id, body.security_code, session)
        except StoreError as e:
            raise store_http_error(e)
        except GuestSignOutError as e:
            raise HTTPException(status_code=SIGN_OUT_STATUS.get(e.reason, 400), detail=e.message)
        return {"success": True, "id": request.id, "sign_out_time": request.sign_out_time}

    # ---------- Notification API ----------

    @app.get("/api/notifications")
    def list_notifications(
        unread_only: bool = False,
        session: VerifiedSession = Depends(current_session),
        notifications: NotificationService = Depends(get_notification_service),
    ):
        items = notifications.list_for(session, unread_only=unread_only)
        return {"notifications": items, "unread": sum(1 for n in items if not n.read)}

    @app.post("/api/notifications/read-all")
    def read_all_notifications(
        session: VerifiedSession = Depends(current_session),
        notifications: NotificationService = Depends(get_notification_service),
    ):
        return {"success": True, "updated": notifications.mark_all_read(session)}

    @app.post("/api/notifications/{notification_id}/read")
    def read_notification(
        notification_id: str,
        session: VerifiedSession = Depends(current_session),
        notifications: NotificationService = Depends(get_notification_service),
    ):
        try:
            return notifications.mark_read(session, notification_id)
        except StoreError as e:
            raise store_http_error(e)

    # ---------- Report API ----------

    @app.get("/api/reports/daily")
    def daily_report(
        day: Optional[date] = Query(None, alias="date"),
        _: VerifiedSession = Depends(require_admin),
        reports: ReportService = Depends(get_report_service),
    ):
        return report_to_dict(reports.generate_daily_report(day or utc_today()))

    @app.get("/api/reports/detailed")
    def detailed_report(
        day: Optional[date] = Query(None, alias="date"),
        _: VerifiedSession = Depends(require_admin),
        reports: ReportService = Depends(get_report_service),
    ):
        return report_to_dict(reports.generate_detailed_report(day or utc_today()))

    # ---------- Announcement API ----------

    @app.get("/api/announcements")
    def list_announcements(
        include_archived: bool = False,
        session: VerifiedSession = Depends(current_session),
        announcements: AnnouncementService = Depends(get_announcement_service),
    ):
        if include_archived and session.is_admin:
            return {"announcements": announcements.list_all()}
        return {"announcements": announcements.list_visible()}

    @app.post("/api/announcements", status_code=201)
    def create_announcement(
        body: AnnouncementCreate,
        session: VerifiedSession = Depends(require_admin),
        announcements: AnnouncementService = Depends(get_announcement_service),
    ):
        try:
            created = announcements.create(
                session,
                title=body.title,
                content=body.content,
                priority=Priority(body.priority),
                expires_at=body.expires_at,
                created_by_name=display_name(session),
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return {"success": True, "id": created.id}

    @app.patch("/api/announcements/{announcement_id}")
    def update_announcement(
        announcement_id: str,
        body: AnnouncementUpdate,
        session: VerifiedSession = Depends(require_admin),
        announcements: AnnouncementService = Depends(get_announcement_service),
    ):
        try:
            return announcements.update(session, announcement_id, **body.model_dump(exclude_none=True))
        except StoreError as e:
            raise store_http_error(e)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @app.delete("/api/announcements/{announcement_id}")
    def delete_announcement(
        announcement_id: str,
        session: VerifiedSession = Depends(require_admin),
        announcements: AnnouncementService = Depends(get_announcement_service),
    ):
        try:
            announcements.delete(session, announcement_id)
        except StoreError as e:
            raise store_http_error(e)
        return {"success": True}

    # ---------- Pages ----------

    @app.get("/login", response_class=HTMLResponse)
    def login_page():
        return page("Sign in", LOGIN_FORM)

    @app.get("/dashboard", response_class=HTMLResponse)
    def dashboard(
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
        announcements: AnnouncementService = Depends(get_announcement_service),
        notifications: NotificationService = Depends(get_notification_service),
    ):
        notices = "".join(
            f"<li><strong>{escape(a.title)}</strong> {escape(a.content)}</li>"
            for a in announcements.list_visible()
        )
        unread = "".join(
            f"<li><strong>{escape(n.title)}</strong> {escape(n.message)}</li>"
            for n in notifications.list_for(session, unread_only=True)
        )
        try:
            rows = "".join(
                f'<li><a href="/requests/{escape(r.id)}">{escape(r.title)}</a> '
                f"({r.category.value}, {r.status.value})</li>"
                for r in store.list_for(session)
            )
        except StoreError as e:
            raise store_http_error(e)
        return page(
            "Dashboard",
            f"<h1>Dashboard</h1><h2>Announcements</h2><ul>{notices}</ul>"
            f"<h2>Notifications</h2><ul>{unread}</ul>"
            f"<h2>Requests</h2><ul>{rows}</ul>",
        )

    @app.get("/requests/new/{category}", response_class=HTMLResponse)
    def new_request_page(category: RequestCategory):
        title, items = POLICIES[category]
        form = (
            f'<form method="post" action="/requests/new/{category.value}">'
            '<input name="title" placeholder="Title" required>'
            '<textarea name="description" placeholder="Description"></textarea>'
            '<input name="room_number" placeholder="Room number">'
            '<select name="priority"><option value="low">Low</option>'
            '<option value="medium" selected>Medium</option>'
            '<option value="high">High</option></select>'
            '<button type="submit">Submit</button></form>'
        )
        return page(title, form + PolicySection(title, items).render())

    @app.post("/requests/new/{category}", response_class=HTMLResponse)
    def submit_request_form(
        category: RequestCategory,
        title: str = Form(...),
        description: str = Form(""),
        room_number: str = Form(""),
        priority: Literal["low", "medium", "high"] = Form("medium"),
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        try:
            store.submit(
                category,
                session,
                title=title,
                user_name=display_name(session),
                room_number=room_number,
                description=description,
                priority=Priority(priority),
            )
        except StoreError as e:
            raise store_http_error(e)
        heading, message = THANK_YOU[category]
        return page(heading, ThankYouMessage(heading, message).render())

    @app.get("/requests/{request_id}", response_class=HTMLResponse)
    def request_page(
        request_id: str,
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        view = ViewDetails(request_id, store, session)
        view.load()
        body = view.render()
        if session.is_admin and view.details is not None:
            picker = UpdateStatus(request_id, store, session)
            picker.select(view.details.status.value)
            body += picker.render()
        if view.details is not None and view.details.is_active:
            body += (
                f'<form method="post" action="/requests/{escape(request_id)}/sign-out">'
                '<h3>Sign guest out</h3>'
                '<input name="security_code" type="password" placeholder="Security code" required>'
                '<button type="submit">Sign out</button></form>'
            )
        return page("Request Details", body)

    @app.post("/requests/{request_id}/status", response_class=HTMLResponse)
    def request_status_form(
        request_id: str,
        status: str = Form(...),
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        picker = UpdateStatus(request_id, store, session)
        picker.select(status)
        picker.confirm()
        return page("Update Status", picker.render())

    @app.post("/requests/{request_id}/sign-out", response_class=HTMLResponse)
    def sign_out_form(
        request_id: str,
        security_code: str = Form(...),
        session: VerifiedSession = Depends(current_session),
        store: RequestStore = Depends(get_request_store),
    ):
        try:
            store.sign_out_guest(request_id, security_code, session)
        except (StoreError, GuestSignOutError) as e:
            return page("Sign Out", f'<div class="error" role="alert">{escape(e.message)}</div>')
        return page("Sign Out", '<div role="alert">Guest signed out successfully</div>')

    return app
