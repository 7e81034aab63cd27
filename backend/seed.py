# File: backend/seed.py
#
# Reference data and demo records loaded at startup.

import logging
from datetime import datetime

from sqlalchemy.orm import Session

import auth, crud, models

logger = logging.getLogger(__name__)

DEPARTMENTS = [
    {"id": "1", "name": "Human Resources", "display_color": "bg-blue-100 text-blue-800"},
    {"id": "2", "name": "Finance", "display_color": "bg-green-100 text-green-800"},
    {"id": "3", "name": "Legal", "display_color": "bg-purple-100 text-purple-800"},
    {"id": "4", "name": "Operations", "display_color": "bg-orange-100 text-orange-800"},
    {"id": "5", "name": "Marketing", "display_color": "bg-pink-100 text-pink-800"},
    {"id": "6", "name": "IT", "display_color": "bg-indigo-100 text-indigo-800"},
]

LOCATIONS = [
    {"id": "main-archive", "name": "Main Archive", "description": "Central records archive",
     "building": "Building A", "floor": "Basement", "room": "B-01"},
    {"id": "legal-library", "name": "Legal Library", "description": "Contracts and legal reference",
     "building": "Building A", "floor": "3", "room": "A-301"},
    {"id": "finance-vault", "name": "Finance Vault", "description": "Restricted financial records",
     "building": "Building B", "floor": "2", "room": "B-210"},
    {"id": "hr-records", "name": "HR Records Room", "description": "Personnel files and policies",
     "building": "Building A", "floor": "1", "room": "A-105"},
    {"id": "operations-office", "name": "Operations Office", "description": "Working copies for operations",
     "building": "Building C", "floor": "1", "room": "C-110"},
    {"id": "it-server-room", "name": "IT Server Room", "description": "IT documentation shelf",
     "building": "Building C", "floor": "2", "room": "C-220"},
    {"id": "offsite-storage", "name": "Offsite Storage", "description": "Long-term storage for archived files",
     "building": "Warehouse 1", "floor": None, "room": None},
]

FILES = [
    {"id": "1", "file_name": "Employee_Handbook_2024.pdf", "department_id": "1",
     "last_accessed": datetime(2024, 1, 15, 10, 30), "accessed_by": "Mr. John Smith",
     "tags": ["handbook", "employees", "policies", "hr"], "file_type": "PDF", "size": "2.3 MB",
     "rfid_tag": "RFID001", "status": "available", "current_location_id": "hr-records"},
    {"id": "2", "file_name": "Q4_Financial_Report.xlsx", "department_id": "2",
     "last_accessed": datetime(2024, 1, 14, 14, 45), "accessed_by": "Ms. Sarah Johnson",
     "tags": ["financial", "quarterly", "report", "revenue"], "file_type": "Excel", "size": "5.7 MB",
     "rfid_tag": "RFID002", "status": "checked-out", "current_location_id": "finance-vault"},
    {"id": "3", "file_name": "Contract_Template_V3.docx", "department_id": "3",
     "last_accessed": datetime(2024, 1, 14, 9, 15), "accessed_by": "Mr. David Wilson",
     "tags": ["contract", "template", "legal", "agreement"], "file_type": "Word", "size": "1.2 MB",
     "rfid_tag": "RFID003", "status": "available", "current_location_id": "legal-library"},
    {"id": "4", "file_name": "Operational_Procedures.pdf", "department_id": "4",
     "last_accessed": datetime(2024, 1, 13, 16, 20), "accessed_by": "Ms. Emily Davis",
     "tags": ["procedures", "operations", "workflow", "sop"], "file_type": "PDF", "size": "4.1 MB",
     "rfid_tag": "RFID004", "status": "available", "current_location_id": "operations-office"},
    {"id": "5", "file_name": "Brand_Guidelines_2024.pdf", "department_id": "5",
     "last_accessed": datetime(2024, 1, 13, 11, 30), "accessed_by": "Mr. Michael Brown",
     "tags": ["brand", "guidelines", "marketing", "design"], "file_type": "PDF", "size": "8.9 MB",
     "rfid_tag": "RFID005", "status": "available", "current_location_id": "main-archive"},
    {"id": "6", "file_name": "Network_Security_Policy.docx", "department_id": "6",
     "last_accessed": datetime(2024, 1, 12, 13, 45), "accessed_by": "Mr. Robert Garcia",
     "tags": ["security", "network", "policy", "it", "cybersecurity"], "file_type": "Word", "size": "3.2 MB",
     "rfid_tag": "RFID006", "status": "archived", "current_location_id": "offsite-storage"},
    {"id": "7", "file_name": "Training_Materials_2024.pptx", "department_id": "1",
     "last_accessed": datetime(2024, 1, 12, 8, 0), "accessed_by": "Ms. Lisa Anderson",
     "tags": ["training", "presentation", "onboarding", "hr"], "file_type": "PowerPoint", "size": "12.4 MB",
     "rfid_tag": "RFID007", "status": "available", "current_location_id": "hr-records"},
    {"id": "8", "file_name": "Budget_Forecast_2024.xlsx", "department_id": "2",
     "last_accessed": datetime(2024, 1, 11, 15, 30), "accessed_by": "Mr. Christopher Lee",
     "tags": ["budget", "forecast", "financial", "planning"], "file_type": "Excel", "size": "4.8 MB",
     "rfid_tag": "RFID008", "status": "checked-out", "current_location_id": "finance-vault"},
]


# Open loans behind the two checked-out files
ISSUES = [
    {"id": "seed-issue-2", "file_id": "2", "file_name": "Q4_Financial_Report.xlsx", "rfid_tag": "RFID002",
     "issued_to": "Ms. Sarah Johnson", "issued_by": "admin",
     "issue_date": datetime(2024, 1, 14, 14, 45), "expected_return_date": datetime(2024, 1, 28, 14, 45),
     "issue_location_id": "finance-vault", "status": "issued"},
    {"id": "seed-issue-8", "file_id": "8", "file_name": "Budget_Forecast_2024.xlsx", "rfid_tag": "RFID008",
     "issued_to": "Mr. Christopher Lee", "issued_by": "admin",
     "issue_date": datetime(2024, 1, 11, 15, 30), "expected_return_date": datetime(2024, 1, 25, 15, 30),
     "issue_location_id": "finance-vault", "status": "issued"},
]


def seed_reference_data(db: Session) -> bool:
    """Load departments, locations and files once. Returns False if already seeded."""
    if db.query(models.Department).count():
        return False
    for position, department in enumerate(DEPARTMENTS):
        db.add(models.Department(position=position, **department))
    for position, location in enumerate(LOCATIONS):
        db.add(models.Location(position=position, **location))
    for record in FILES:
        db.add(models.FileRecord(**record))
    for issue in ISSUES:
        db.add(models.FileIssue(**issue))
    db.commit()
    logger.info(
        "Seeded %d departments, %d locations, %d files, %d open issues",
        len(DEPARTMENTS), len(LOCATIONS), len(FILES), len(ISSUES),
    )
    return True


def seed_users(db: Session, admin_password: str, user_password: str) -> None:
    accounts = [
        ("admin", admin_password, models.Role.admin),
        ("user", user_password, models.Role.user),
    ]
    for username, password, role in accounts:
        if crud.get_user_by_username(db, username) is None:
            crud.create_user(db, username, auth.get_password_hash(password), role)
            logger.info("Created demo account '%s' (%s)", username, role.value)


def seed_database(db: Session, admin_password: str, user_password: str) -> None:
    seed_reference_data(db)
    seed_users(db, admin_password, user_password)
