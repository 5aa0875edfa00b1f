"""
Presentation widgets rendered to HTML fragments.
UpdateStatus and ViewDetails talk to the RequestStore; the others are static.
"""

import logging
from enum import Enum
from html import escape
from typing import List, Optional

from residence.exceptions import PERMISSION_DENIED_MESSAGE, PermissionDeniedError, StoreError
from residence.models import RequestStatus, ServiceRequest, StatusUpdateResult, VerifiedSession
from residence.services.request_store import RequestStore

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred."
STATUS_UPDATED_MESSAGE = "Status updated successfully"
POLICY_PREAMBLE = (
    "By submitting this request, you agree to provide accurate information "
    "and understand that:"
)

STATUS_LABELS = {
    RequestStatus.PENDING: "Pending",
    RequestStatus.IN_PROGRESS: "In Progress",
    RequestStatus.COMPLETED: "Completed",
    RequestStatus.DENIED: "Denied",
}


class UpdateStatus:
    """Status picker; nothing is written until confirm()"""

    def __init__(self, request_id: str, store: RequestStore, principal: Optional[VerifiedSession]):
        self.request_id = request_id
        self.store = store
        self.principal = principal
        self.selection: str = RequestStatus.PENDING.value
        self.last_result: Optional[StatusUpdateResult] = None

    def select(self, status: str) -> None:
        self.selection = status

    def confirm(self) -> str:
        """Write the selection and return the acknowledgment text"""
        self.last_result = self.store.set_status(self.request_id, self.selection, self.principal)
        return self.acknowledgment()

    def acknowledgment(self) -> str:
        if self.last_result is None:
            return ""
        if self.last_result.ok:
            return STATUS_UPDATED_MESSAGE
        return f"Status update failed: {self.last_result.message}"

    def render(self) -> str:
        options = "".join(
            f'<option value="{status.value}"{" selected" if status.value == self.selection else ""}>'
            f"{label}</option>"
            for status, label in STATUS_LABELS.items()
        )
        notice = ""
        if self.last_result is not None:
            css = "ok" if self.last_result.ok else "error"
            notice = f'<p class="{css}" role="alert">{escape(self.acknowledgment())}</p>'
        return (
            '<div class="update-status">'
            "<h2>Update Status</h2>"
            f'<form method="post" action="/requests/{escape(self.request_id)}/status">'
            f'<select name="status">{options}</select>'
            '<button type="submit">Update</button>'
            "</form>"
            f"{notice}"
            "</div>"
        )


class ViewState(str, Enum):
    LOADING = "loading"
    LOADED = "loaded"
    PERMISSION_ERROR = "permission_error"
    GENERIC_ERROR = "generic_error"


class ViewDetails:
    """Shows one request; starts in LOADING until load() resolves"""

    def __init__(self, request_id: str, store: RequestStore, principal: Optional[VerifiedSession]):
        self.store = store
        self.principal = principal
        self.request_id = request_id
        self._reset()

    def _reset(self) -> None:
        self.state = ViewState.LOADING
        self.details: Optional[ServiceRequest] = None
        self.error: Optional[str] = None

    def set_request_id(self, request_id: str) -> None:
        """Point the view at another request; it must be loaded again"""
        if request_id != self.request_id:
            self.request_id = request_id
            self._reset()

    def load(self) -> ViewState:
        try:
            self.details = self.store.fetch(self.request_id, self.principal)
            self.state = ViewState.LOADED
        except PermissionDeniedError:
            self.error = PERMISSION_DENIED_MESSAGE
            self.state = ViewState.PERMISSION_ERROR
        except StoreError as e:
            logger.info(f"Could not load request {self.request_id}: {e.kind}")
            self.error = GENERIC_ERROR_MESSAGE
            self.state = ViewState.GENERIC_ERROR
        return self.state

    def render(self) -> str:
        if self.state in (ViewState.PERMISSION_ERROR, ViewState.GENERIC_ERROR):
            return f'<div class="error">{escape(self.error or "")}</div>'
        if self.state == ViewState.LOADING or self.details is None:
            return "<div>Loading...</div>"

        d = self.details
        rows = [
            ("ID", d.id),
            ("Title", d.title),
            ("User", d.user_name),
            ("Room", d.room_number),
            ("Description", d.description),
            ("Priority", d.priority.value),
            ("Status", d.status.value),
        ]
        body = "".join(f"<p>{label}: {escape(str(value))}</p>" for label, value in rows)
        return f'<div class="request-details"><h2>Request Details</h2>{body}</div>'


class ThankYouMessage:
    def __init__(self, title: str, message: str, close_url: str = "/dashboard"):
        self.title = title
        self.message = message
        self.close_url = close_url

    def render(self) -> str:
        return (
            '<div class="card thank-you">'
            f"<h3>{escape(self.title)}</h3>"
            f"<p>{escape(self.message)}</p>"
            f'<a href="{escape(self.close_url)}">Close</a>'
            "</div>"
        )


class PolicySection:
    """Policy notice shown above submission forms; clauses render in the given order"""

    def __init__(self, title: str, items: List[str]):
        self.title = title
        self.items = list(items)

    def render(self) -> str:
        clauses = "".join(f"<li>{escape(item)}</li>" for item in self.items)
        return (
            '<div class="policy">'
            f"<h3>{escape(self.title)}</h3>"
            f"<p>{escape(POLICY_PREAMBLE)}</p>"
            f"<ul>{clauses}</ul>"
            "</div>"
        )
