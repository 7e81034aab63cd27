# File: backend/approvals.py
#
# What happens after an administrator approves a request. Approval builds a
# command for the request type and hands it to the handler registered for
# that type.

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Union

from sqlalchemy import event
from sqlalchemy.orm import Session

import crud, errors, models, schemas
from blob_store import BlobStore

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*(day|days|week|weeks|month|months)?\s*$", re.IGNORECASE)
_UNIT_DAYS = {"day": 1, "week": 7, "month": 30}

_FILE_TYPES = {
    "pdf": "PDF",
    "doc": "Word",
    "docx": "Word",
    "xls": "Excel",
    "xlsx": "Excel",
    "ppt": "PowerPoint",
    "pptx": "PowerPoint",
}


def parse_duration(text: str) -> int:
    """'7 days', '2 weeks', '1 month' or a bare '14' -> number of days."""
    match = _DURATION_RE.match(text or "")
    if not match:
        raise errors.ValidationError(f"Unrecognised duration '{text}'", detail={"field": "duration"})
    amount = int(match.group(1))
    unit = (match.group(2) or "day").lower().rstrip("s")
    days = amount * _UNIT_DAYS[unit]
    if days <= 0:
        raise errors.ValidationError("Duration must be at least one day", detail={"field": "duration"})
    return days


def file_type_for(file_name: str) -> str:
    extension = os.path.splitext(file_name)[1].lstrip(".").lower()
    if not extension:
        return "Unknown"
    return _FILE_TYPES.get(extension, extension.upper())


@dataclass
class OpenIssueCommand:
    request: models.FileRequest
    decided_by: str
    expected_return_date: Optional[datetime] = None
    issue_location_id: Optional[str] = None


@dataclass
class StoreUploadCommand:
    request: models.FileRequest
    decided_by: str


ApprovalCommand = Union[OpenIssueCommand, StoreUploadCommand]
Handler = Callable[[Session, ApprovalCommand], object]


def build_command(
    db_request: models.FileRequest,
    decided_by: str,
    approval: Optional[schemas.RequestApprove] = None,
) -> ApprovalCommand:
    if db_request.type == models.RequestType.issue.value:
        return OpenIssueCommand(
            request=db_request,
            decided_by=decided_by,
            expected_return_date=approval.expected_return_date if approval else None,
            issue_location_id=approval.issue_location_id if approval else None,
        )
    return StoreUploadCommand(request=db_request, decided_by=decided_by)


class ApprovalDispatcher:
    """Runs the registered follow-up action for an approved request."""

    def __init__(self):
        self._handlers: Dict[str, Handler] = {}

    def register(self, request_type, handler: Handler) -> None:
        self._handlers[models.RequestType(request_type).value] = handler

    def handler_for(self, request_type) -> Handler:
        request_type = models.RequestType(request_type).value
        handler = self._handlers.get(request_type)
        if handler is None:
            raise errors.NoApprovalHandler(f"No approval handler registered for '{request_type}' requests")
        return handler

    def dispatch(
        self,
        db: Session,
        db_request: models.FileRequest,
        decided_by: str,
        approval: Optional[schemas.RequestApprove] = None,
    ):
        handler = self.handler_for(db_request.type)
        command = build_command(db_request, decided_by, approval)
        logger.info("Dispatching %s for request %s", type(command).__name__, db_request.id)
        return handler(db, command)


def make_issue_handler(default_location_id: str) -> Handler:
    def handle_open_issue(db: Session, command: OpenIssueCommand) -> models.FileIssue:
        db_request = command.request
        db_file = crud.get_file_by_rfid(db, db_request.rfid_tag)
        issue_date = crud.utcnow()
        if command.expected_return_date is not None:
            expected = command.expected_return_date
        else:
            expected = issue_date + timedelta(days=parse_duration(db_request.duration))
        location_id = (
            command.issue_location_id
            or db_file.current_location_id
            or default_location_id
        )
        return crud.open_issue(
            db,
            file_id=db_file.id,
            issued_to=db_request.requested_by,
            issued_by=command.decided_by,
            expected_return_date=expected,
            issue_location_id=location_id,
            notes=db_request.notes,
            issue_date=issue_date,
            commit=False,
        )

    return handle_open_issue


def make_upload_handler(blob_store: BlobStore, intake_location_id: str) -> Handler:
    def handle_store_upload(db: Session, command: StoreUploadCommand) -> models.FileRecord:
        db_request = command.request
        db_file = crud.create_file(
            db,
            file_name=db_request.file_name,
            department_id=db_request.department_id,
            rfid_tag=db_request.rfid_tag,
            file_type=file_type_for(db_request.file_name),
            size=db_request.file_size,
            tags=db_request.tags,
            accessed_by=db_request.created_by,
            commit=False,
        )
        crud.record_move(
            db,
            db_file.id,
            intake_location_id,
            moved_by=command.decided_by,
            notes=f"Registered from upload request {db_request.id}",
            commit=False,
        )
        # Bytes go out last, once every database check has passed
        if db_request.content is not None:
            url = blob_store.store(db_request.content, db_request.content_type or crud.PDF_CONTENT_TYPE)
            _discard_on_rollback(db, blob_store, url)
            db_file.storage_url = url
        return db_file

    return handle_store_upload


def _discard_on_rollback(db: Session, blob_store: BlobStore, url: str) -> None:
    """Drop the stored blob if the transaction that records it is rolled back."""
    settled = []

    @event.listens_for(db, "after_commit", once=True)
    def _keep(session):
        settled.append(True)

    @event.listens_for(db, "after_rollback", once=True)
    def _discard(session):
        if settled:
            return
        settled.append(True)
        try:
            blob_store.discard(url)
        except errors.StoreError as exc:
            logger.error("Could not discard %s after rollback: %s", url, exc)


def default_dispatcher(
    blob_store: BlobStore,
    default_location_id: str,
    intake_location_id: str,
) -> ApprovalDispatcher:
    dispatcher = ApprovalDispatcher()
    dispatcher.register(models.RequestType.issue, make_issue_handler(default_location_id))
    dispatcher.register(models.RequestType.upload, make_upload_handler(blob_store, intake_location_id))
    return dispatcher
