import uuid

import pytest

from conftest import auth_headers
from mocktrial.services import team_service
from mocktrial.utils.exceptions import DuplicateTeamMemberError, ValidationError


def test_duplicate_email_ignores_case(db, open_case):
    member = team_service.add_team_member(db, str(open_case.id), "Jo Park", "Paralegal", "Jo@Firm.com")
    assert member.email == "jo@firm.com"
    with pytest.raises(DuplicateTeamMemberError) as exc:
        team_service.add_team_member(db, str(open_case.id), "Jo P.", "Associate", "JO@firm.com ")
    assert exc.value.status_code == 409
    assert exc.value.code == "DUPLICATE_TEAM_MEMBER"


def test_batch_reports_failures_and_saves_the_rest(db, open_case):
    team_service.add_team_member(db, str(open_case.id), "Jo Park", "Paralegal", "jo@firm.com")
    result = team_service.add_team_members(db, str(open_case.id), [
        {"name": "Ray Chen", "role": "Associate", "email": "ray@firm.com"},
        {"name": "Ray Again", "role": "Associate", "email": "RAY@firm.com"},
        {"name": "Jo Twin", "role": "Paralegal", "email": "jo@firm.com"},
        {"name": "", "role": "Expert", "email": "bad"},
    ])
    assert result["addedCount"] == 1
    assert result["failedCount"] == 3
    assert [e["error"] for e in result["errors"][:2]] == ["Email already exists in team"] * 2
    assert "Valid name is required" in result["errors"][2]["error"]
    assert len(team_service.get_team_members(db, str(open_case.id))) == 2


def test_batch_limits(db, open_case):
    with pytest.raises(ValidationError):
        team_service.add_team_members(db, str(open_case.id), [])
    too_many = [{"name": f"M {i}", "role": "Clerk", "email": f"m{i}@firm.com"} for i in range(21)]
    with pytest.raises(ValidationError) as exc:
        team_service.add_team_members(db, str(open_case.id), too_many)
    assert "Cannot add more than 20 team members at once" in exc.value.errors


def test_update_remove_and_stats(db, open_case):
    case_id = str(open_case.id)
    a = team_service.add_team_member(db, case_id, "Jo Park", "Paralegal", "jo@firm.com")
    b = team_service.add_team_member(db, case_id, "Ray Chen", "Paralegal", "ray@firm.com")
    team_service.add_team_member(db, case_id, "Lee Fox", "Expert", "lee@firm.com")

    with pytest.raises(DuplicateTeamMemberError):
        team_service.update_team_member(db, case_id, str(b.id), "Ray Chen", "Paralegal", "jo@firm.com")
    updated = team_service.update_team_member(db, case_id, str(a.id), "Jo Park", "Lead Paralegal", "jo@firm.com")
    assert updated.role == "Lead Paralegal"

    stats = team_service.get_team_stats(db, case_id)
    assert stats["totalMembers"] == 3
    assert stats["uniqueRoles"] == 3

    assert team_service.remove_team_member(db, case_id, str(b.id)) is True
    assert team_service.remove_team_member(db, case_id, str(b.id)) is False
    assert team_service.get_team_stats(db, case_id)["byRole"] == [
        {"role": "Expert", "count": 1},
        {"role": "Lead Paralegal", "count": 1},
    ]


async def test_team_routes_belong_to_the_case_owner(client, open_case, attorney):
    response = await client.post(
        f"/api/v1/war-room-team/case/{open_case.id}",
        json={"name": "Jo Park", "role": "Paralegal", "email": "jo@firm.com"},
        headers=auth_headers(attorney.id, "attorney"),
    )
    assert response.status_code == 201

    response = await client.post(
        f"/api/v1/war-room-team/case/{open_case.id}",
        json={"name": "Jo Park", "role": "Paralegal", "email": "JO@firm.com"},
        headers=auth_headers(attorney.id, "attorney"),
    )
    assert response.status_code == 409

    response = await client.get(
        f"/api/v1/war-room-team/case/{open_case.id}", headers=auth_headers(uuid.uuid4(), "attorney")
    )
    assert response.status_code == 403
