# File: backend/schemas.py

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime

from models import FileStatus, IssueStatus, RequestStatus, RequestType, Role

# --- User Schemas ---

class User(BaseModel):
    user_id: int
    username: str
    role: Role

    model_config = ConfigDict(from_attributes=True)

# --- Auth Schemas ---

class Token(BaseModel):
    access_token: str
    token_type: str

class TokenData(BaseModel):
    username: Optional[str] = None

# --- Directory Schemas ---

class Department(BaseModel):
    id: str
    name: str
    display_color: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class Location(BaseModel):
    id: str
    name: str
    description: str = ""
    building: Optional[str] = None
    floor: Optional[str] = None
    room: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

# --- File Schemas ---

class FileRecord(BaseModel):
    id: str
    file_name: str
    department: Department
    rfid_tag: str
    file_type: Optional[str] = None
    size: Optional[str] = None
    tags: List[str] = []
    last_accessed: Optional[datetime] = None
    accessed_by: Optional[str] = None
    status: FileStatus
    current_location: Optional[Location] = None
    storage_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class FileStatusUpdate(BaseModel):
    status: FileStatus

class FileStats(BaseModel):
    total: int
    available: int
    checked_out: int
    archived: int
    unique_users: int
    recent: int

class LocationGroup(BaseModel):
    location: Location
    files: List[FileRecord]

# --- Issue Schemas ---

class IssueCreate(BaseModel):
    file_id: str = Field(min_length=1)
    issued_to: str = Field(min_length=1)
    expected_return_date: datetime
    issue_location_id: str = Field(min_length=1)
    issue_date: Optional[datetime] = None
    notes: Optional[str] = None

class IssueClose(BaseModel):
    actual_return_date: datetime
    return_location_id: str = Field(min_length=1)
    notes: Optional[str] = None

class FileIssue(BaseModel):
    id: str
    file_id: str
    file_name: Optional[str] = None
    rfid_tag: Optional[str] = None
    issued_to: str
    issued_by: str
    issue_date: datetime
    expected_return_date: datetime
    actual_return_date: Optional[datetime] = None
    issue_location: Location
    return_location: Optional[Location] = None
    status: IssueStatus
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

# --- Location History Schemas ---

class MoveCreate(BaseModel):
    location_id: str = Field(min_length=1)
    notes: Optional[str] = None

class LocationHistory(BaseModel):
    id: str
    file_id: str
    location: Location
    previous_location: Optional[Location] = None
    moved_by: str
    moved_date: datetime
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

# --- Request Schemas ---

class RequestCreate(BaseModel):
    """A user submission. Issue-only and upload-only fields are mutually exclusive."""

    type: RequestType
    rfid_tag: str
    file_name: str
    department_id: str
    notes: Optional[str] = None

    # Issue requests
    duration: Optional[str] = None

    # Upload requests
    created_by: Optional[str] = None
    tags: Optional[List[str]] = None
    file_size: Optional[str] = None

    @field_validator("rfid_tag", "file_name", "department_id")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @model_validator(mode="after")
    def _fields_match_type(self):
        upload_fields = [
            name for name in ("created_by", "tags", "file_size")
            if getattr(self, name) is not None
        ]
        if self.type == RequestType.issue:
            if upload_fields:
                raise ValueError(f"issue requests cannot carry {', '.join(upload_fields)}")
            if not (self.duration or "").strip():
                raise ValueError("duration is required for issue requests")
        else:
            if self.duration is not None:
                raise ValueError("upload requests cannot carry a duration")
            if not (self.created_by or "").strip():
                raise ValueError("created_by is required for upload requests")
        return self

class FileRequest(BaseModel):
    id: str
    type: RequestType
    rfid_tag: str
    file_name: str
    requested_by: str
    department: Department
    request_date: datetime
    status: RequestStatus
    notes: Optional[str] = None
    duration: Optional[str] = None
    created_by: Optional[str] = None
    tags: Optional[List[str]] = None
    file_size: Optional[str] = None
    content_type: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class RequestApprove(BaseModel):
    # Optional overrides for the loan opened by an approved issue request
    expected_return_date: Optional[datetime] = None
    issue_location_id: Optional[str] = None

class RequestCounts(BaseModel):
    all: int
    pending: int
    approved: int
    rejected: int
    issue: int
    upload: int
