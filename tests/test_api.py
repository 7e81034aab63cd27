def test_root_and_health(client):
    assert client.get("/").status_code == 200
    assert client.get("/health").json() == {"status": "ok"}


def test_login_and_me(client, admin_headers):
    response = client.get("/users/me/", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["username"] == "admin"
    assert response.json()["role"] == "admin"


def test_bad_password_is_unauthorized(client):
    response = client.post("/token", data={"username": "admin", "password": "wrong"})
    assert response.status_code == 401
    assert response.json()["code"] == "auth_error"
    assert response.headers["www-authenticate"] == "Bearer"


def test_protected_endpoint_requires_token(client):
    assert client.get("/issues/").status_code == 401


def test_directory_endpoints(client):
    departments = client.get("/departments/").json()
    assert [d["name"] for d in departments][:2] == ["Human Resources", "Finance"]
    assert len(client.get("/locations/").json()) == 7

    response = client.get("/locations/nowhere")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_search_files(client):
    response = client.get("/files/", params={"q": "budget"})
    assert [f["rfid_tag"] for f in response.json()] == ["RFID008"]

    response = client.get("/files/", params={"department_id": "1", "tags": ["hr"]})
    assert {f["id"] for f in response.json()} == {"1", "7"}

    response = client.get("/files/", params={"location_id": "finance-vault"})
    assert {f["id"] for f in response.json()} == {"2", "8"}


def test_file_lookup_by_rfid(client):
    response = client.get("/files/rfid/RFID003")
    assert response.status_code == 200
    assert response.json()["department"]["name"] == "Legal"
    assert response.json()["current_location"]["id"] == "legal-library"
    assert client.get("/files/rfid/RFID404").status_code == 404


def test_stats_and_grouping(client):
    stats = client.get("/files/stats").json()
    assert stats["total"] == 8
    assert stats["checked_out"] == 2

    groups = client.get("/files/by-location").json()
    assert groups[0]["location"]["id"] == "main-archive"
    assert sum(len(g["files"]) for g in groups) == 8


def test_issue_and_return_over_http(client, admin_headers):
    response = client.post(
        "/issues/",
        json={
            "file_id": "1",
            "issued_to": "alice",
            "issue_location_id": "main-archive",
            "issue_date": "2024-02-01T10:00:00",
            "expected_return_date": "2024-02-08T10:00:00",
        },
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    issue = response.json()
    assert issue["status"] == "issued"
    assert issue["issued_by"] == "admin"
    assert client.get("/files/1").json()["status"] == "checked-out"

    again = client.post(
        "/issues/",
        json={"file_id": "1", "issued_to": "bob", "issue_location_id": "main-archive",
              "expected_return_date": "2030-01-01T00:00:00"},
        headers=admin_headers,
    )
    assert again.status_code == 409
    assert again.json()["code"] == "already_issued"
    assert again.json()["detail"]["issue_id"] == issue["id"]

    response = client.post(
        f"/issues/{issue['id']}/close",
        json={"actual_return_date": "2024-02-05T10:00:00", "return_location_id": "legal-library"},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "returned"
    assert response.json()["return_location"]["id"] == "legal-library"

    file_1 = client.get("/files/1").json()
    assert file_1["status"] == "available"
    assert client.get("/files/1/location").json()["id"] == "legal-library"
    history = client.get("/files/1/history").json()
    assert [h["location"]["id"] for h in history] == ["main-archive", "legal-library"]

    issues = client.get("/files/1/issues", headers=admin_headers).json()
    assert [i["id"] for i in issues] == [issue["id"]]


def test_issue_with_return_before_issue_is_rejected(client, admin_headers):
    response = client.post(
        "/issues/",
        json={"file_id": "1", "issued_to": "alice", "issue_location_id": "main-archive",
              "issue_date": "2024-02-08T10:00:00", "expected_return_date": "2024-02-01T10:00:00"},
        headers=admin_headers,
    )
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_date_order"
    assert client.get("/files/1").json()["status"] == "available"


def test_users_cannot_issue_files(client, user_headers):
    response = client.post(
        "/issues/",
        json={"file_id": "1", "issued_to": "alice", "issue_location_id": "main-archive",
              "expected_return_date": "2030-01-01T00:00:00"},
        headers=user_headers,
    )
    assert response.status_code == 403


def test_archived_file_cannot_be_checked_out(client, admin_headers):
    response = client.post("/files/6/status", json={"status": "checked-out"}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"

    response = client.post("/files/6/status", json={"status": "available"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "available"


def test_manual_move_and_recent_moves(client, admin_headers):
    response = client.post(
        "/files/5/moves", json={"location_id": "legal-library", "notes": "Review"}, headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["previous_location"]["id"] == "main-archive"

    recent = client.get("/moves/recent").json()
    assert recent[0]["file_id"] == "5"
    assert client.get("/files/5").json()["accessed_by"] == "admin"


def test_check_overdue_marks_seeded_loans(client, admin_headers):
    response = client.post("/issues/check-overdue/", headers=admin_headers)
    assert response.status_code == 200
    assert {i["id"] for i in response.json()} == {"seed-issue-2", "seed-issue-8"}
    assert all(i["status"] == "overdue" for i in response.json())

    open_issues = client.get("/issues/open/", headers=admin_headers).json()
    assert {i["id"] for i in open_issues} == {"seed-issue-2", "seed-issue-8"}


def test_issue_request_lifecycle(client, admin_headers, user_headers):
    response = client.post(
        "/requests/",
        json={"type": "issue", "rfid_tag": "RFID003", "file_name": "Contract_Template_V3.docx",
              "department_id": "3", "duration": "2 weeks"},
        headers=user_headers,
    )
    assert response.status_code == 200, response.text
    request_id = response.json()["id"]
    assert response.json()["status"] == "pending"
    assert response.json()["requested_by"] == "user"

    mine = client.get("/requests/my/", headers=user_headers).json()
    assert [r["id"] for r in mine] == [request_id]
    assert client.get(f"/requests/{request_id}", headers=user_headers).status_code == 200
    assert client.get("/requests/", headers=user_headers).status_code == 403

    response = client.post(f"/requests/{request_id}/approve", headers=admin_headers)
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "approved"
    assert response.json()["decided_by"] == "admin"
    assert client.get("/files/3").json()["status"] == "checked-out"

    response = client.post(f"/requests/{request_id}/reject", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "already_decided"

    counts = client.get("/requests/counts", headers=admin_headers).json()
    assert counts["all"] == 1
    assert counts["approved"] == 1
    assert counts["issue"] == 1


def test_invalid_request_body(client, user_headers):
    response = client.post(
        "/requests/",
        json={"type": "issue", "rfid_tag": "RFID003", "file_name": "Contract", "department_id": "3"},
        headers=user_headers,
    )
    assert response.status_code == 422


def test_requests_are_private_to_their_owner(client, admin_headers, user_headers):
    response = client.post(
        "/requests/",
        json={"type": "issue", "rfid_tag": "RFID001", "file_name": "Handbook",
              "department_id": "1", "duration": "7 days"},
        headers=admin_headers,
    )
    request_id = response.json()["id"]
    assert client.get(f"/requests/{request_id}", headers=user_headers).status_code == 403
    assert client.get(f"/requests/{request_id}", headers=admin_headers).status_code == 200


def test_upload_request_lifecycle(client, admin_headers, user_headers, blob_store):
    content = b"%PDF-1.7\n" + b"0" * 2039
    response = client.post(
        "/requests/upload",
        data={
            "rfid_tag": "RFID100",
            "file_name": "Policy_Update.pdf",
            "department_id": "1",
            "created_by": "Ms. Lisa Anderson",
            "tags": "policy, hr",
        },
        files={"file": ("Policy_Update.pdf", content, "application/pdf")},
        headers=user_headers,
    )
    assert response.status_code == 200, response.text
    submitted = response.json()
    assert submitted["tags"] == ["policy", "hr"]
    assert submitted["file_size"] == "2.0 KB"
    assert submitted["content_type"] == "application/pdf"

    listed = client.get("/requests/", params={"type": "upload"}, headers=admin_headers).json()
    assert [r["id"] for r in listed] == [submitted["id"]]

    response = client.post(f"/requests/{submitted['id']}/approve", headers=admin_headers)
    assert response.status_code == 200, response.text

    registered = client.get("/files/rfid/RFID100").json()
    assert registered["file_type"] == "PDF"
    assert registered["status"] == "available"
    assert registered["current_location"]["id"] == "main-archive"
    assert blob_store.get(registered["storage_url"])[0] == content


def test_upload_rejects_non_pdf(client, user_headers):
    response = client.post(
        "/requests/upload",
        data={"rfid_tag": "RFID101", "file_name": "notes.txt", "department_id": "1",
              "created_by": "Ms. Lisa Anderson"},
        files={"file": ("notes.txt", b"plain text", "text/plain")},
        headers=user_headers,
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_upload_requires_created_by(client, user_headers):
    response = client.post(
        "/requests/upload",
        data={"rfid_tag": "RFID101", "file_name": "memo.pdf", "department_id": "1", "created_by": " "},
        files={"file": ("memo.pdf", b"%PDF-1.4", "application/pdf")},
        headers=user_headers,
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_upload_rejects_empty_file(client, user_headers):
    response = client.post(
        "/requests/upload",
        data={"rfid_tag": "RFID102", "file_name": "blank.pdf", "department_id": "1",
              "created_by": "Ms. Lisa Anderson"},
        files={"file": ("blank.pdf", b"", "application/pdf")},
        headers=user_headers,
    )
    assert response.status_code == 422
    assert response.json()["detail"] == {"field": "file"}
