# File: backend/crud.py

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

import errors
import models, schemas

logger = logging.getLogger(__name__)

FileStatus = models.FileStatus
IssueStatus = models.IssueStatus
RequestStatus = models.RequestStatus

# The only legal status changes for a file. Archived files must be restored
# to available before they can be issued again.
ALLOWED_STATUS_TRANSITIONS = {
    (FileStatus.available.value, FileStatus.checked_out.value),
    (FileStatus.checked_out.value, FileStatus.available.value),
    (FileStatus.available.value, FileStatus.archived.value),
    (FileStatus.archived.value, FileStatus.available.value),
}

RECENT_ACCESS_WINDOW = timedelta(days=7)


# --- Helpers ---

def utcnow() -> datetime:
    """Naive UTC timestamp, which is what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

def new_id() -> str:
    return uuid.uuid4().hex

def _finish(db: Session, commit: bool):
    # commit=False leaves the work staged in the caller's transaction
    if commit:
        db.commit()
    else:
        db.flush()

def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle in (haystack or "").lower()


# --- Directory Functions ---

def list_departments(db: Session) -> List[models.Department]:
    return db.query(models.Department).order_by(models.Department.position, models.Department.id).all()

def list_locations(db: Session) -> List[models.Location]:
    return db.query(models.Location).order_by(models.Location.position, models.Location.id).all()

def get_department(db: Session, department_id: str) -> models.Department:
    department = db.get(models.Department, department_id)
    if department is None:
        raise errors.NotFound(f"Department '{department_id}' not found")
    return department

def get_location(db: Session, location_id: str) -> models.Location:
    location = db.get(models.Location, location_id)
    if location is None:
        raise errors.NotFound(f"Location '{location_id}' not found")
    return location


# --- File Registry Functions ---

def get_file_by_id(db: Session, file_id: str) -> models.FileRecord:
    db_file = db.get(models.FileRecord, file_id)
    if db_file is None:
        raise errors.NotFound(f"File '{file_id}' not found")
    return db_file

def get_file_by_rfid(db: Session, rfid_tag: str) -> models.FileRecord:
    db_file = db.query(models.FileRecord).filter(models.FileRecord.rfid_tag == rfid_tag).first()
    if db_file is None:
        raise errors.NotFound(f"No file registered with RFID tag '{rfid_tag}'")
    return db_file

def file_matches(
    db_file: models.FileRecord,
    query: str = "",
    department_id: Optional[str] = None,
    tags: Optional[List[str]] = None,
    location_id: Optional[str] = None,
) -> bool:
    """
    OR within a filter category, AND across categories.
    - query: substring of the file name, any tag, or who last accessed it
    - department_id: exact department
    - tags: any file tag containing any filter tag
    - location_id: exact current location
    All text matching is case-insensitive.
    """
    file_tags = [tag.lower() for tag in (db_file.tags or [])]

    text = (query or "").strip().lower()
    if text:
        if not (
            _contains(db_file.file_name, text)
            or any(text in tag for tag in file_tags)
            or _contains(db_file.accessed_by, text)
        ):
            return False

    if department_id and db_file.department_id != department_id:
        return False

    wanted = [tag.strip().lower() for tag in (tags or []) if tag and tag.strip()]
    if wanted and not any(w in tag for w in wanted for tag in file_tags):
        return False

    if location_id and db_file.current_location_id != location_id:
        return False

    return True

def search_files(
    db: Session,
    query: str = "",
    department_id: Optional[str] = None,
    tags: Optional[List[str]] = None,
    location_id: Optional[str] = None,
) -> Iterator[models.FileRecord]:
    """Lazily yield matching files in id order."""
    candidates = db.query(models.FileRecord)
    if department_id:
        candidates = candidates.filter(models.FileRecord.department_id == department_id)
    for db_file in candidates.order_by(models.FileRecord.id):
        if file_matches(db_file, query, department_id, tags, location_id):
            yield db_file

def check_status_transition(current: str, new_status: str):
    if (current, new_status) not in ALLOWED_STATUS_TRANSITIONS:
        raise errors.InvalidTransition(
            f"Cannot change file status from '{current}' to '{new_status}'",
            detail={"from": current, "to": new_status},
        )

def set_file_status(db: Session, file_id: str, new_status, commit: bool = True) -> models.FileRecord:
    db_file = get_file_by_id(db, file_id)
    new_status = FileStatus(new_status).value
    check_status_transition(db_file.status, new_status)

    previous = db_file.status
    db_file.status = new_status
    _finish(db, commit)
    logger.info("File %s status %s -> %s", file_id, previous, new_status)
    return db_file

def set_file_location(
    db: Session,
    file_id: str,
    location_id: str,
    actor: Optional[str] = None,
    commit: bool = True,
) -> models.FileRecord:
    db_file = get_file_by_id(db, file_id)
    location = get_location(db, location_id)

    db_file.current_location_id = location.id
    db_file.current_location = location
    if actor:
        db_file.last_accessed = utcnow()
        db_file.accessed_by = actor
    _finish(db, commit)
    return db_file

def create_file(
    db: Session,
    file_name: str,
    department_id: str,
    rfid_tag: str,
    file_type: Optional[str] = None,
    size: Optional[str] = None,
    tags: Optional[List[str]] = None,
    accessed_by: Optional[str] = None,
    storage_url: Optional[str] = None,
    file_id: Optional[str] = None,
    commit: bool = True,
) -> models.FileRecord:
    """Register a new, available file. RFID tags and ids are unique."""
    department = get_department(db, department_id)
    if db.query(models.FileRecord).filter(models.FileRecord.rfid_tag == rfid_tag).first():
        raise errors.Conflict(f"RFID tag '{rfid_tag}' is already registered")
    file_id = file_id or new_id()
    if db.get(models.FileRecord, file_id) is not None:
        raise errors.Conflict(f"File id '{file_id}' is already registered")

    db_file = models.FileRecord(
        id=file_id,
        file_name=file_name,
        department_id=department.id,
        rfid_tag=rfid_tag,
        file_type=file_type,
        size=size,
        tags=list(tags or []),
        last_accessed=utcnow(),
        accessed_by=accessed_by,
        status=FileStatus.available.value,
        storage_url=storage_url,
    )
    db.add(db_file)
    _finish(db, commit)
    logger.info("Registered file %s (%s)", db_file.id, rfid_tag)
    return db_file

def file_stats(db: Session, now: Optional[datetime] = None) -> dict:
    now = as_utc_naive(now) if now else utcnow()
    files = db.query(models.FileRecord).all()
    return {
        "total": len(files),
        "available": sum(1 for f in files if f.status == FileStatus.available.value),
        "checked_out": sum(1 for f in files if f.status == FileStatus.checked_out.value),
        "archived": sum(1 for f in files if f.status == FileStatus.archived.value),
        "unique_users": len({f.accessed_by for f in files if f.accessed_by}),
        "recent": sum(
            1 for f in files
            if f.last_accessed is not None and now - f.last_accessed <= RECENT_ACCESS_WINDOW
        ),
    }

def files_by_location(db: Session) -> List[dict]:
    groups = {}
    located = (
        db.query(models.FileRecord)
        .filter(models.FileRecord.current_location_id.isnot(None))
        .order_by(models.FileRecord.id)
    )
    for db_file in located:
        group = groups.setdefault(
            db_file.current_location_id,
            {"location": db_file.current_location, "files": []},
        )
        group["files"].append(db_file)
    return sorted(groups.values(), key=lambda g: (g["location"].position or 0, g["location"].id))


# --- Issue Ledger Functions ---

def get_issue(db: Session, issue_id: str) -> models.FileIssue:
    issue = db.get(models.FileIssue, issue_id)
    if issue is None:
        raise errors.NotFound(f"Issue '{issue_id}' not found")
    return issue

def list_issues(db: Session) -> List[models.FileIssue]:
    return db.query(models.FileIssue).order_by(models.FileIssue.issue_date.desc()).all()

def list_open_issues(db: Session) -> List[models.FileIssue]:
    return (
        db.query(models.FileIssue)
        .filter(models.FileIssue.status.in_(models.OPEN_ISSUE_STATUSES))
        .order_by(models.FileIssue.issue_date.desc())
        .all()
    )

def list_issues_for_file(db: Session, file_id: str) -> List[models.FileIssue]:
    get_file_by_id(db, file_id)
    return (
        db.query(models.FileIssue)
        .filter(models.FileIssue.file_id == file_id)
        .order_by(models.FileIssue.issue_date.desc())
        .all()
    )

def get_open_issue_for_file(db: Session, file_id: str) -> Optional[models.FileIssue]:
    return (
        db.query(models.FileIssue)
        .filter(
            models.FileIssue.file_id == file_id,
            models.FileIssue.status.in_(models.OPEN_ISSUE_STATUSES),
        )
        .first()
    )

def open_issue(
    db: Session,
    file_id: str,
    issued_to: str,
    issued_by: str,
    expected_return_date: datetime,
    issue_location_id: str,
    notes: Optional[str] = None,
    issue_date: Optional[datetime] = None,
    commit: bool = True,
) -> models.FileIssue:
    """
    Hand a file to a person.
    Everything is checked before anything changes: the file and location
    exist, the file has no open loan, it may become checked-out, and the
    expected return is not before the issue date. The file is then marked
    checked-out and moved to the issue location.
    """
    db_file = get_file_by_id(db, file_id)
    location = get_location(db, issue_location_id)

    existing = get_open_issue_for_file(db, file_id)
    if existing is not None:
        logger.warning("File %s already issued (issue %s)", file_id, existing.id)
        raise errors.AlreadyIssued(
            f"File '{file_id}' is already issued to {existing.issued_to}",
            detail={"issue_id": existing.id},
        )
    check_status_transition(db_file.status, FileStatus.checked_out.value)

    issue_date = as_utc_naive(issue_date) if issue_date else utcnow()
    expected_return_date = as_utc_naive(expected_return_date)
    if expected_return_date < issue_date:
        raise errors.InvalidDateOrder("Expected return date cannot be before the issue date")

    issue = models.FileIssue(
        id=new_id(),
        file_id=db_file.id,
        file_name=db_file.file_name,
        rfid_tag=db_file.rfid_tag,
        issued_to=issued_to,
        issued_by=issued_by,
        issue_date=issue_date,
        expected_return_date=expected_return_date,
        issue_location_id=location.id,
        status=IssueStatus.issued.value,
        notes=notes,
    )
    db.add(issue)
    set_file_status(db, file_id, FileStatus.checked_out, commit=False)
    record_move(db, file_id, location.id, moved_by=issued_by, notes=f"Issued to {issued_to}", commit=False)
    _finish(db, commit)
    logger.info("Issued file %s to %s (issue %s)", file_id, issued_to, issue.id)
    return issue

def close_issue(
    db: Session,
    issue_id: str,
    actual_return_date: datetime,
    return_location_id: str,
    closed_by: Optional[str] = None,
    notes: Optional[str] = None,
    commit: bool = True,
) -> models.FileIssue:
    """Return an issued (or overdue) file to a location and make it available."""
    issue = get_issue(db, issue_id)
    if issue.status not in models.OPEN_ISSUE_STATUSES:
        raise errors.AlreadyClosed(f"Issue '{issue_id}' is already {issue.status}")
    location = get_location(db, return_location_id)

    actual_return_date = as_utc_naive(actual_return_date)
    if actual_return_date < issue.issue_date:
        logger.warning("Rejected return of issue %s dated before its issue date", issue_id)
        raise errors.InvalidDateOrder("Return date cannot be before issue date")

    db_file = get_file_by_id(db, issue.file_id)
    # The file may already have been made available by hand
    release = db_file.status != FileStatus.available.value
    if release:
        check_status_transition(db_file.status, FileStatus.available.value)

    issue.actual_return_date = actual_return_date
    issue.return_location_id = location.id
    issue.return_location = location
    issue.status = IssueStatus.returned.value
    if notes:
        issue.notes = notes
    if release:
        set_file_status(db, issue.file_id, FileStatus.available, commit=False)
    record_move(
        db,
        issue.file_id,
        location.id,
        moved_by=closed_by or issue.issued_by,
        notes=notes,
        commit=False,
    )
    _finish(db, commit)
    logger.info("Closed issue %s; file %s returned to %s", issue_id, issue.file_id, location.id)
    return issue

def mark_overdue_issues(db: Session, now: Optional[datetime] = None, commit: bool = True) -> List[models.FileIssue]:
    now = as_utc_naive(now) if now else utcnow()
    overdue = (
        db.query(models.FileIssue)
        .filter(
            models.FileIssue.status == IssueStatus.issued.value,
            models.FileIssue.expected_return_date < now,
        )
        .all()
    )
    for issue in overdue:
        issue.status = IssueStatus.overdue.value
    if overdue:
        _finish(db, commit)
        logger.info("Marked %d issue(s) overdue", len(overdue))
    return overdue


# --- Location Tracker Functions ---

def location_history(db: Session, file_id: str) -> List[models.LocationHistory]:
    """Oldest first."""
    get_file_by_id(db, file_id)
    return (
        db.query(models.LocationHistory)
        .filter(models.LocationHistory.file_id == file_id)
        .order_by(models.LocationHistory.moved_date, models.LocationHistory.sequence)
        .all()
    )

def _latest_move(db: Session, file_id: str) -> Optional[models.LocationHistory]:
    return (
        db.query(models.LocationHistory)
        .filter(models.LocationHistory.file_id == file_id)
        .order_by(models.LocationHistory.moved_date.desc(), models.LocationHistory.sequence.desc())
        .first()
    )

def current_location_of(db: Session, file_id: str) -> Optional[models.Location]:
    db_file = get_file_by_id(db, file_id)
    latest = _latest_move(db, file_id)
    if latest is not None:
        return latest.location
    return db_file.current_location

def record_move(
    db: Session,
    file_id: str,
    location_id: str,
    moved_by: str,
    notes: Optional[str] = None,
    commit: bool = True,
) -> models.LocationHistory:
    """Append a history entry for the move and update the file's current location."""
    get_file_by_id(db, file_id)
    location = get_location(db, location_id)
    previous = current_location_of(db, file_id)

    last_sequence = (
        db.query(func.max(models.LocationHistory.sequence))
        .filter(models.LocationHistory.file_id == file_id)
        .scalar()
    )
    entry = models.LocationHistory(
        id=new_id(),
        file_id=file_id,
        sequence=(last_sequence or 0) + 1,
        location_id=location.id,
        previous_location_id=previous.id if previous is not None else None,
        moved_by=moved_by,
        moved_date=utcnow(),
        notes=notes,
    )
    db.add(entry)
    set_file_location(db, file_id, location.id, actor=moved_by, commit=False)
    _finish(db, commit)
    logger.info(
        "File %s moved %s -> %s by %s",
        file_id, previous.id if previous is not None else "-", location.id, moved_by,
    )
    return entry

def recent_moves(db: Session, limit: int = 20) -> List[models.LocationHistory]:
    return (
        db.query(models.LocationHistory)
        .order_by(models.LocationHistory.moved_date.desc(), models.LocationHistory.sequence.desc())
        .limit(limit)
        .all()
    )


# --- Request Queue Functions ---

PDF_CONTENT_TYPE = "application/pdf"

def format_size(num_bytes: int) -> str:
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"

def submit_request(
    db: Session,
    request: schemas.RequestCreate,
    requested_by: str,
    content: Optional[bytes] = None,
    content_type: Optional[str] = None,
    commit: bool = True,
) -> models.FileRequest:
    try:
        department = get_department(db, request.department_id)
    except errors.NotFound as exc:
        raise errors.ValidationError(exc.message, detail={"field": "department_id"}) from exc

    if content is not None:
        if request.type != models.RequestType.upload:
            raise errors.ValidationError("Only upload requests can carry file content")
        if content_type != PDF_CONTENT_TYPE:
            raise errors.ValidationError("Only PDF files are allowed", detail={"field": "file"})
        if not content:
            raise errors.ValidationError("The uploaded file is empty", detail={"field": "file"})

    file_size = request.file_size
    if file_size is None and content is not None:
        file_size = format_size(len(content))

    db_request = models.FileRequest(
        id=new_id(),
        type=models.RequestType(request.type).value,
        rfid_tag=request.rfid_tag,
        file_name=request.file_name,
        requested_by=requested_by,
        department_id=department.id,
        request_date=utcnow(),
        status=RequestStatus.pending.value,
        notes=request.notes,
        duration=request.duration,
        created_by=request.created_by,
        tags=list(request.tags) if request.tags is not None else None,
        file_size=file_size,
        content_type=content_type if content is not None else None,
        content=content,
    )
    db.add(db_request)
    _finish(db, commit)
    logger.info("Request %s (%s) submitted by %s", db_request.id, db_request.type, requested_by)
    return db_request

def get_request(db: Session, request_id: str) -> models.FileRequest:
    db_request = db.get(models.FileRequest, request_id)
    if db_request is None:
        raise errors.NotFound(f"Request '{request_id}' not found")
    return db_request

def decide_request(
    db: Session,
    request_id: str,
    decision,
    decided_by: str,
    dispatcher=None,
    approval: Optional[schemas.RequestApprove] = None,
    commit: bool = True,
) -> models.FileRequest:
    """
    Approve or reject a pending request, exactly once.
    With a dispatcher, approval also runs the follow-up action for the
    request type inside the same transaction. If that action fails the
    decision is rolled back and the request stays pending.
    """
    db_request = get_request(db, request_id)
    decision = RequestStatus(decision)
    if decision == RequestStatus.pending:
        raise errors.ValidationError("A decision must be 'approved' or 'rejected'")
    if db_request.status != RequestStatus.pending.value:
        logger.warning("Request %s already %s", request_id, db_request.status)
        raise errors.AlreadyDecided(
            f"Request '{request_id}' is already {db_request.status}",
            detail={"status": db_request.status},
        )

    db_request.status = decision.value
    db_request.decided_by = decided_by
    db_request.decided_at = utcnow()

    if dispatcher is not None and decision == RequestStatus.approved:
        try:
            dispatcher.dispatch(db, db_request, decided_by, approval)
        except Exception:
            db.rollback()
            raise
    _finish(db, commit)
    logger.info("Request %s %s by %s", request_id, decision.value, decided_by)
    return db_request

def request_matches(
    db_request: models.FileRequest,
    status: Optional[str] = None,
    request_type: Optional[str] = None,
    query: str = "",
    requested_by: Optional[str] = None,
) -> bool:
    if requested_by and db_request.requested_by != requested_by:
        return False
    if status and db_request.status != RequestStatus(status).value:
        return False
    if request_type and db_request.type != models.RequestType(request_type).value:
        return False
    text = (query or "").strip().lower()
    if text and not (
        _contains(db_request.file_name, text)
        or _contains(db_request.requested_by, text)
        or _contains(db_request.rfid_tag, text)
    ):
        return False
    return True

def list_requests(
    db: Session,
    status: Optional[str] = None,
    request_type: Optional[str] = None,
    query: str = "",
    requested_by: Optional[str] = None,
) -> List[models.FileRequest]:
    """Newest first."""
    requests = db.query(models.FileRequest).order_by(models.FileRequest.request_date.desc())
    return [r for r in requests if request_matches(r, status, request_type, query, requested_by)]

def request_counts(db: Session) -> dict:
    def count(column, value):
        return db.query(models.FileRequest).filter(column == value).count()

    return {
        "all": db.query(models.FileRequest).count(),
        "pending": count(models.FileRequest.status, RequestStatus.pending.value),
        "approved": count(models.FileRequest.status, RequestStatus.approved.value),
        "rejected": count(models.FileRequest.status, RequestStatus.rejected.value),
        "issue": count(models.FileRequest.type, models.RequestType.issue.value),
        "upload": count(models.FileRequest.type, models.RequestType.upload.value),
    }


# --- User Functions ---

def get_user_by_username(db: Session, username: str):
    return db.query(models.User).filter(models.User.username == username).first()

def create_user(db: Session, username: str, hashed_password: str, role=models.Role.user):
    db_user = models.User(
        username=username,
        hashed_password=hashed_password,
        role=models.Role(role).value,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user
