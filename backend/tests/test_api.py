import uuid

from conftest import auth_headers, case_payload, future_date


async def test_root_and_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "healthy"}

    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["database"]["status"] == "ok"


async def test_correlation_id_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "abc-123", "X-Tab-ID": "tab-9"})
    assert response.headers["X-Correlation-ID"] == "abc-123"
    assert response.headers["X-Tab-ID"] == "tab-9"

    response = await client.get("/health")
    assert uuid.UUID(response.headers["X-Correlation-ID"])


async def test_create_case(client, attorney):
    payload = case_payload(scheduled_time="11:00", timezone_offset=-300)
    response = await client.post("/api/v1/cases/", json=payload, headers=auth_headers(attorney.id, "attorney"))
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["scheduledTime"] == "16:00:00"
    assert body["data"]["attorneyStatus"] == "pending"
    assert body["data"]["adminApprovalStatus"] == "pending"


async def test_validation_error_envelope(client, attorney):
    response = await client.post(
        "/api/v1/cases/",
        json={"case_type": "Civil"},
        headers=auth_headers(attorney.id, "attorney"),
    )
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "VALIDATION_ERROR"
    assert detail["message"].startswith("Case validation failed: ")
    assert "Case title is required" in detail["errors"]


async def test_slot_conflict_envelope(client, attorney, make_case):
    existing = make_case()
    response = await client.post("/api/v1/cases/", json=case_payload(), headers=auth_headers(attorney.id, "attorney"))
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "SLOT_UNAVAILABLE"
    assert detail["conflicting_case_id"] == str(existing.id)


async def test_missing_case_is_404(client, admin):
    response = await client.get(f"/api/v1/cases/{uuid.uuid4()}", headers=auth_headers(admin.id, "admin"))
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"


async def test_other_attorney_cannot_read_case(client, make_case):
    case = make_case()
    response = await client.get(f"/api/v1/cases/{case.id}", headers=auth_headers(uuid.uuid4(), "attorney"))
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "FORBIDDEN"


async def test_admin_only_routes(client, make_juror):
    juror = make_juror()
    response = await client.get("/api/v1/cases/", headers=auth_headers(juror.id, "juror"))
    assert response.status_code == 403


async def test_bad_token_rejected(client):
    response = await client.get("/api/v1/cases/mine", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


async def test_admin_approves_then_juror_applies(client, admin, make_case, make_juror):
    case = make_case()
    response = await client.patch(
        f"/api/v1/cases/{case.id}/status",
        json={"admin_approval_status": "approved", "admin_comments": "Approved"},
        headers=auth_headers(admin.id, "admin"),
    )
    assert response.status_code == 200
    assert response.json()["data"]["attorneyStatus"] == "war_room"

    juror = make_juror()
    headers = auth_headers(juror.id, "juror")
    available = await client.get("/api/v1/cases/available", headers=headers)
    assert [c["id"] for c in available.json()["data"]] == [str(case.id)]

    first = await client.post("/api/v1/applications/", json={"case_id": str(case.id)}, headers=headers)
    assert first.status_code == 201
    second = await client.post("/api/v1/applications/", json={"case_id": str(case.id)}, headers=headers)
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "DUPLICATE_APPLICATION"


async def test_reset_token_flow(client, admin, attorney):
    issued = await client.post(
        "/api/v1/account-security/password-reset/tokens",
        json={"email": attorney.email, "user_type": "attorney"},
        headers=auth_headers(admin.id, "admin"),
    )
    token = issued.json()["data"]["token"]

    body = {"token": token, "user_type": "attorney"}
    consumed = await client.post("/api/v1/account-security/password-reset/consume", json=body)
    assert consumed.status_code == 200
    assert consumed.json()["data"]["email"] == attorney.email

    again = await client.post("/api/v1/account-security/password-reset/consume", json=body)
    assert again.status_code == 400
    assert again.json()["detail"]["code"] == "INVALID_RESET_TOKEN"


async def test_maintenance_run(client, admin):
    response = await client.post("/api/v1/maintenance/run", headers=auth_headers(admin.id, "admin"))
    assert response.status_code == 200
    assert set(response.json()["data"]) >= {"notificationsArchived", "eventsArchived", "resetTokensRemoved"}


async def test_slot_availability_bad_date_is_400(client, attorney):
    response = await client.get(
        "/api/v1/cases/slot-availability",
        params={"scheduled_date": "2025-13-45", "scheduled_time": "10:00"},
        headers=auth_headers(attorney.id, "attorney"),
    )
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "VALIDATION_ERROR"
    assert "Invalid date format. Use YYYY-MM-DD" in detail["errors"]


async def test_slot_availability_accepts_one_digit_hour(client, attorney, make_case):
    existing = make_case(scheduled_time="09:00")
    response = await client.get(
        "/api/v1/cases/slot-availability",
        params={"scheduled_date": future_date(), "scheduled_time": "9:00"},
        headers=auth_headers(attorney.id, "attorney"),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["available"] is False
    assert data["conflictingCaseId"] == str(existing.id)


async def test_batch_size_counts_every_submitted_id(client, open_case, attorney):
    ids = [str(uuid.uuid4()) for _ in range(50)] + ["not-a-uuid"]
    response = await client.post(
        f"/api/v1/applications/case/{open_case.id}/batch-approve",
        json={"application_ids": ids},
        headers=auth_headers(attorney.id, "attorney"),
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "BATCH_TOO_LARGE"
