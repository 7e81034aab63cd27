import pytest

import crud, schemas


@pytest.mark.parametrize(
    "schema",
    [schemas.User, schemas.Department, schemas.Location, schemas.FileRecord,
     schemas.FileIssue, schemas.LocationHistory, schemas.FileRequest],
)
def test_response_schemas_read_orm_attributes(schema):
    assert schema.model_config["from_attributes"] is True


def test_file_record_from_orm(db_session):
    record = schemas.FileRecord.model_validate(crud.get_file_by_id(db_session, "2"))

    assert record.rfid_tag == "RFID002"
    assert record.department.name == "Finance"
    assert record.current_location.id == "finance-vault"
    assert record.status == "checked-out"


def test_user_from_orm(db_session):
    user = schemas.User.model_validate(crud.get_user_by_username(db_session, "admin"))
    assert user.role == "admin"
