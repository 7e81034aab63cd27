import pytest

import crud, errors


def test_seeded_file_reports_stored_location(db_session):
    assert crud.location_history(db_session, "1") == []
    assert crud.current_location_of(db_session, "1").id == "hr-records"


def test_record_move_appends_and_updates_file(db_session):
    entry = crud.record_move(db_session, "1", "main-archive", moved_by="alice", notes="Annual audit")

    assert entry.previous_location_id == "hr-records"
    assert entry.location.name == "Main Archive"
    assert entry.notes == "Annual audit"
    db_file = crud.get_file_by_id(db_session, "1")
    assert db_file.current_location_id == "main-archive"
    assert db_file.accessed_by == "alice"
    assert crud.current_location_of(db_session, "1").id == "main-archive"


def test_repeated_moves_grow_history_but_not_location(db_session):
    crud.record_move(db_session, "4", "main-archive", moved_by="alice")
    second = crud.record_move(db_session, "4", "main-archive", moved_by="alice")

    history = crud.location_history(db_session, "4")
    assert len(history) == 2
    assert second.previous_location_id == "main-archive"
    assert crud.current_location_of(db_session, "4").id == "main-archive"


def test_history_is_oldest_first_and_chained(db_session):
    for location_id in ["legal-library", "finance-vault", "it-server-room"]:
        crud.record_move(db_session, "5", location_id, moved_by="bob")

    history = crud.location_history(db_session, "5")
    assert [h.location_id for h in history] == ["legal-library", "finance-vault", "it-server-room"]
    assert [h.previous_location_id for h in history] == ["main-archive", "legal-library", "finance-vault"]
    assert [h.sequence for h in history] == [1, 2, 3]
    assert crud.get_file_by_id(db_session, "5").current_location_id == history[-1].location_id


def test_move_unknown_file_or_location(db_session):
    with pytest.raises(errors.NotFound):
        crud.record_move(db_session, "404", "main-archive", moved_by="alice")
    with pytest.raises(errors.NotFound):
        crud.record_move(db_session, "1", "roof", moved_by="alice")
    assert crud.location_history(db_session, "1") == []
    with pytest.raises(errors.NotFound):
        crud.location_history(db_session, "404")


def test_recent_moves_newest_first(db_session):
    crud.record_move(db_session, "1", "main-archive", moved_by="alice")
    crud.record_move(db_session, "3", "main-archive", moved_by="alice")
    crud.record_move(db_session, "7", "main-archive", moved_by="alice")

    recent = crud.recent_moves(db_session, limit=2)
    assert len(recent) == 2
    assert recent[0].file_id == "7"
