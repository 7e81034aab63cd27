# File: backend/models.py

import enum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import deferred, relationship

from database import Base


# --- Status vocabularies ---
# str-based so values compare equal to what is stored in the String columns.

class FileStatus(str, enum.Enum):
    available = "available"
    checked_out = "checked-out"
    archived = "archived"


class IssueStatus(str, enum.Enum):
    issued = "issued"
    returned = "returned"
    overdue = "overdue"


# Loans that still hold the file
OPEN_ISSUE_STATUSES = (IssueStatus.issued.value, IssueStatus.overdue.value)


class RequestType(str, enum.Enum):
    issue = "issue"
    upload = "upload"


class RequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class Role(str, enum.Enum):
    user = "user"
    admin = "admin"


# 1. Users Table Model
class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    role = Column(String, index=True, default=Role.user.value)  # 'user', 'admin'


# 2. Reference data: departments and locations
class Department(Base):
    __tablename__ = "departments"

    id = Column(String, primary_key=True)
    position = Column(Integer, default=0)
    name = Column(String, nullable=False)
    display_color = Column(String)

    files = relationship("FileRecord", back_populates="department")


class Location(Base):
    __tablename__ = "locations"

    id = Column(String, primary_key=True)
    position = Column(Integer, default=0)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    building = Column(String, nullable=True)
    floor = Column(String, nullable=True)
    room = Column(String, nullable=True)


# 3. Files Table Model
class FileRecord(Base):
    __tablename__ = "files"

    id = Column(String, primary_key=True, index=True)
    file_name = Column(String, index=True, nullable=False)
    department_id = Column(String, ForeignKey("departments.id"), nullable=False)
    rfid_tag = Column(String, unique=True, index=True, nullable=False)
    file_type = Column(String)
    size = Column(String)
    tags = Column(JSON, default=list)
    last_accessed = Column(DateTime)
    accessed_by = Column(String)
    status = Column(String, index=True, default=FileStatus.available.value)
    current_location_id = Column(String, ForeignKey("locations.id"), nullable=True)
    storage_url = Column(String, nullable=True)

    department = relationship("Department", back_populates="files")
    current_location = relationship("Location")


# 4. File Issues (loans) Table Model
class FileIssue(Base):
    __tablename__ = "file_issues"

    id = Column(String, primary_key=True, index=True)
    # Weak reference: no FK so the ledger does not own the file
    file_id = Column(String, index=True, nullable=False)
    file_name = Column(String)
    rfid_tag = Column(String)
    issued_to = Column(String, nullable=False)
    issued_by = Column(String, nullable=False)
    issue_date = Column(DateTime, nullable=False)
    expected_return_date = Column(DateTime, nullable=False)
    actual_return_date = Column(DateTime, nullable=True)
    issue_location_id = Column(String, ForeignKey("locations.id"), nullable=False)
    return_location_id = Column(String, ForeignKey("locations.id"), nullable=True)
    status = Column(String, index=True, default=IssueStatus.issued.value)  # 'issued', 'returned', 'overdue'
    notes = Column(Text, nullable=True)

    issue_location = relationship("Location", foreign_keys=[issue_location_id])
    return_location = relationship("Location", foreign_keys=[return_location_id])


# 5. Location History Table Model (append-only)
class LocationHistory(Base):
    __tablename__ = "location_history"

    id = Column(String, primary_key=True, index=True)
    file_id = Column(String, index=True, nullable=False)
    sequence = Column(Integer, nullable=False)
    location_id = Column(String, ForeignKey("locations.id"), nullable=False)
    previous_location_id = Column(String, ForeignKey("locations.id"), nullable=True)
    moved_by = Column(String, nullable=False)
    moved_date = Column(DateTime, nullable=False)
    notes = Column(Text, nullable=True)

    location = relationship("Location", foreign_keys=[location_id])
    previous_location = relationship("Location", foreign_keys=[previous_location_id])


# 6. File Requests Table Model
class FileRequest(Base):
    __tablename__ = "file_requests"

    id = Column(String, primary_key=True, index=True)
    type = Column(String, index=True, nullable=False)  # 'issue', 'upload'
    rfid_tag = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    requested_by = Column(String, nullable=False)
    department_id = Column(String, ForeignKey("departments.id"), nullable=False)
    request_date = Column(DateTime, nullable=False)
    status = Column(String, index=True, default=RequestStatus.pending.value)  # 'pending', 'approved', 'rejected'
    notes = Column(Text, nullable=True)

    # Issue requests only
    duration = Column(String, nullable=True)

    # Upload requests only
    created_by = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)
    file_size = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    content = deferred(Column(LargeBinary, nullable=True))

    decided_by = Column(String, nullable=True)
    decided_at = Column(DateTime, nullable=True)

    department = relationship("Department")
