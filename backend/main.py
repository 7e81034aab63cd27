# File: backend/main.py

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

# Import all our different modules
import approvals, auth, crud, errors, models, schemas, seed
from blob_store import build_blob_store
from commands import run_command
from config import settings
from database import SessionLocal, engine, get_db

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

# Create all database tables
models.Base.metadata.create_all(bind=engine)

blob_store = build_blob_store(settings.blob_store_dir)
approval_dispatcher = approvals.default_dispatcher(
    blob_store,
    default_location_id=settings.default_issue_location_id,
    intake_location_id=settings.intake_location_id,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.seed_on_startup:
        db = SessionLocal()
        try:
            seed.seed_database(db, settings.admin_password, settings.user_password)
        finally:
            db.close()
    logger.info("File registry ready")
    yield
    engine.dispose()
    logger.info("File registry stopped")


app = FastAPI(title="RFID File Registry", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

errors.register_error_handlers(app)


def get_dispatcher() -> approvals.ApprovalDispatcher:
    return approval_dispatcher


async def execute(db: Session, operation, *args, **kwargs):
    return await run_command(db, operation, *args, delay=settings.simulated_latency_seconds, **kwargs)


# --- API Endpoints ---

@app.get("/")
def read_root():
    return {"message": "Welcome to the RFID File Registry API!"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


# --- Auth Endpoints ---

@app.post("/token", response_model=schemas.Token)
def login_for_access_token(
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends()
):
    principal = auth.login(db, form_data.username, form_data.password)
    access_token = auth.create_access_token(
        data={"sub": principal.username, "role": principal.role.value},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/users/me/", response_model=schemas.User)
def read_users_me(current_user: models.User = Depends(auth.get_current_user)):
    return current_user


# --- Directory Endpoints ---

@app.get("/departments/", response_model=List[schemas.Department])
def read_departments(db: Session = Depends(get_db)):
    return crud.list_departments(db)


@app.get("/departments/{department_id}", response_model=schemas.Department)
def read_department(department_id: str, db: Session = Depends(get_db)):
    return crud.get_department(db, department_id)


@app.get("/locations/", response_model=List[schemas.Location])
def read_locations(db: Session = Depends(get_db)):
    return crud.list_locations(db)


@app.get("/locations/{location_id}", response_model=schemas.Location)
def read_location(location_id: str, db: Session = Depends(get_db)):
    return crud.get_location(db, location_id)


# --- File Endpoints ---

@app.get("/files/", response_model=List[schemas.FileRecord])
def search_files(
    q: str = "",
    department_id: Optional[str] = None,
    tags: List[str] = Query(default=[]),
    location_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list(crud.search_files(db, q, department_id, tags, location_id))


@app.get("/files/stats", response_model=schemas.FileStats)
def read_file_stats(db: Session = Depends(get_db)):
    return crud.file_stats(db)


@app.get("/files/by-location", response_model=List[schemas.LocationGroup])
def read_files_by_location(db: Session = Depends(get_db)):
    return crud.files_by_location(db)


@app.get("/files/rfid/{rfid_tag}", response_model=schemas.FileRecord)
def read_file_by_rfid(rfid_tag: str, db: Session = Depends(get_db)):
    return crud.get_file_by_rfid(db, rfid_tag)


@app.get("/files/{file_id}", response_model=schemas.FileRecord)
def read_file(file_id: str, db: Session = Depends(get_db)):
    return crud.get_file_by_id(db, file_id)


@app.post("/files/{file_id}/status", response_model=schemas.FileRecord)
async def update_file_status(
    file_id: str,
    update: schemas.FileStatusUpdate,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user)
):
    return await execute(db, crud.set_file_status, file_id, update.status)


# --- Issue Endpoints ---

@app.get("/issues/", response_model=List[schemas.FileIssue])
def read_issues(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return crud.list_issues(db)


@app.get("/issues/open/", response_model=List[schemas.FileIssue])
def read_open_issues(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return crud.list_open_issues(db)


@app.post("/issues/check-overdue/", response_model=List[schemas.FileIssue])
async def trigger_overdue_check(
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user)
):
    return await execute(db, crud.mark_overdue_issues)


@app.get("/issues/{issue_id}", response_model=schemas.FileIssue)
def read_issue(
    issue_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return crud.get_issue(db, issue_id)


@app.post("/issues/", response_model=schemas.FileIssue)
async def issue_file(
    issue: schemas.IssueCreate,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user)
):
    return await execute(
        db,
        crud.open_issue,
        issue.file_id,
        issue.issued_to,
        admin_user.username,
        issue.expected_return_date,
        issue.issue_location_id,
        notes=issue.notes,
        issue_date=issue.issue_date,
    )


@app.post("/issues/{issue_id}/close", response_model=schemas.FileIssue)
async def close_issue(
    issue_id: str,
    close: schemas.IssueClose,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user)
):
    return await execute(
        db,
        crud.close_issue,
        issue_id,
        close.actual_return_date,
        close.return_location_id,
        closed_by=admin_user.username,
        notes=close.notes,
    )


@app.get("/files/{file_id}/issues", response_model=List[schemas.FileIssue])
def read_file_issues(
    file_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return crud.list_issues_for_file(db, file_id)


# --- Location Endpoints ---

@app.post("/files/{file_id}/moves", response_model=schemas.LocationHistory)
async def move_file(
    file_id: str,
    move: schemas.MoveCreate,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user)
):
    return await execute(db, crud.record_move, file_id, move.location_id, admin_user.username, notes=move.notes)


@app.get("/files/{file_id}/history", response_model=List[schemas.LocationHistory])
def read_file_history(file_id: str, db: Session = Depends(get_db)):
    return crud.location_history(db, file_id)


@app.get("/files/{file_id}/location", response_model=Optional[schemas.Location])
def read_file_location(file_id: str, db: Session = Depends(get_db)):
    return crud.current_location_of(db, file_id)


@app.get("/moves/recent", response_model=List[schemas.LocationHistory])
def read_recent_moves(limit: int = Query(default=20, ge=1, le=200), db: Session = Depends(get_db)):
    return crud.recent_moves(db, limit=limit)


# --- Request Endpoints ---

@app.post("/requests/", response_model=schemas.FileRequest)
async def create_new_request(
    request: schemas.RequestCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return await execute(db, crud.submit_request, request, current_user.username)


@app.post("/requests/upload", response_model=schemas.FileRequest)
async def create_upload_request(
    rfid_tag: str = Form(...),
    file_name: str = Form(...),
    department_id: str = Form(...),
    created_by: str = Form(...),
    tags: str = Form(""),
    notes: Optional[str] = Form(None),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    """
    Submit an upload request with the document attached.
    Tags are comma separated. The document is held until an admin decides.
    """
    try:
        request = schemas.RequestCreate(
            type=models.RequestType.upload,
            rfid_tag=rfid_tag,
            file_name=file_name,
            department_id=department_id,
            created_by=created_by,
            tags=[tag.strip() for tag in tags.split(",") if tag.strip()],
            notes=notes,
        )
    except PydanticValidationError as exc:
        raise errors.ValidationError("Invalid upload request", detail=str(exc)) from exc
    content = await file.read()
    return await execute(
        db,
        crud.submit_request,
        request,
        current_user.username,
        content=content,
        content_type=file.content_type,
    )


@app.get("/requests/", response_model=List[schemas.FileRequest])
def read_requests(
    status: Optional[models.RequestStatus] = None,
    request_type: Optional[models.RequestType] = Query(default=None, alias="type"),
    q: str = "",
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user)
):
    return crud.list_requests(db, status=status, request_type=request_type, query=q)


@app.get("/requests/my/", response_model=List[schemas.FileRequest])
def get_my_requests(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    return crud.list_requests(db, requested_by=current_user.username)


@app.get("/requests/counts", response_model=schemas.RequestCounts)
def read_request_counts(
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user)
):
    return crud.request_counts(db)


@app.get("/requests/{request_id}", response_model=schemas.FileRequest)
def read_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    db_request = crud.get_request(db, request_id)
    # Admins see everything; users only their own requests
    if current_user.role != models.Role.admin.value and db_request.requested_by != current_user.username:
        raise HTTPException(status_code=403, detail="Not authorized to view this request")
    return db_request


@app.post("/requests/{request_id}/approve", response_model=schemas.FileRequest)
async def approve_pending_request(
    request_id: str,
    approval: Optional[schemas.RequestApprove] = None,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user),
    dispatcher: approvals.ApprovalDispatcher = Depends(get_dispatcher),
):
    """
    Approve a pending request. (Admin Only)
    Approving an issue request opens the loan; approving an upload request
    registers the file.
    """
    return await execute(
        db,
        crud.decide_request,
        request_id,
        models.RequestStatus.approved,
        admin_user.username,
        dispatcher=dispatcher,
        approval=approval,
    )


@app.post("/requests/{request_id}/reject", response_model=schemas.FileRequest)
async def reject_pending_request(
    request_id: str,
    db: Session = Depends(get_db),
    admin_user: models.User = Depends(auth.get_current_admin_user)
):
    return await execute(
        db,
        crud.decide_request,
        request_id,
        models.RequestStatus.rejected,
        admin_user.username,
    )
