import pytest

from conftest import auth_headers
from mocktrial.db.models import ApplicationStatus, JurorApplication
from mocktrial.services import witness_service
from mocktrial.utils.exceptions import ValidationError

WITNESSES = [
    {"name": "Dr. Ana Ruiz", "side": "Plaintiff", "description": "Treating physician"},
    {"name": "Tom Hale", "side": "Defendant", "email": "Tom.Hale@Example.com"},
    {"name": "Officer Kim", "side": "Neutral"},
]


def test_save_replaces_the_whole_list(db, open_case):
    saved = witness_service.save_witnesses(db, str(open_case.id), WITNESSES)
    assert [w.order_index for w in saved] == [0, 1, 2]
    assert saved[1].email == "tom.hale@example.com"

    witness_service.save_witnesses(db, str(open_case.id), WITNESSES[:1])
    listed = witness_service.get_witnesses(db, str(open_case.id))
    assert [w["name"] for w in listed] == ["Dr. Ana Ruiz"]


def test_one_bad_witness_rejects_the_batch(db, open_case):
    witness_service.save_witnesses(db, str(open_case.id), WITNESSES)
    bad = [WITNESSES[0], {"name": "", "side": "Jury"}]
    with pytest.raises(ValidationError) as exc:
        witness_service.save_witnesses(db, str(open_case.id), bad)
    assert "Witness 2: Witness name is required" in exc.value.errors
    assert any(e.startswith("Witness 2: Witness side must be one of") for e in exc.value.errors)
    assert len(witness_service.get_witnesses(db, str(open_case.id))) == 3

    with pytest.raises(ValidationError):
        witness_service.save_witnesses(db, str(open_case.id), {"name": "x"})


def test_stats_and_accepting(db, open_case):
    saved = witness_service.save_witnesses(db, str(open_case.id), WITNESSES)
    witness_service.set_accepted(db, str(saved[0].id), True)
    stats = witness_service.get_witness_stats(db, str(open_case.id))
    assert stats == {
        "total": 3,
        "accepted": 1,
        "bySide": {"Plaintiff": 1, "Defendant": 1, "Neutral": 1},
    }


def test_export_sheet(db, open_case):
    assert "No witnesses have been added for this case." in witness_service.export_witnesses_text(
        db, str(open_case.id)
    )
    witness_service.save_witnesses(db, str(open_case.id), WITNESSES)
    text = witness_service.export_witnesses_text(db, str(open_case.id))
    assert text.startswith("WITNESSES FOR CREDIBILITY EVALUATION\n")
    assert "Witness 1: Dr. Ana Ruiz\nSide: Plaintiff\nDescription: Treating physician\n" in text
    assert "Witness 3: Officer Kim\nSide: Neutral\n" in text
    assert text.count("---") == 3


def test_delete_witness(db, open_case):
    saved = witness_service.save_witnesses(db, str(open_case.id), WITNESSES)
    assert witness_service.delete_witness(db, str(saved[0].id)) is True
    assert witness_service.delete_witness(db, str(saved[0].id)) is False
    with pytest.raises(ValidationError):
        witness_service.get_witness(db, "nope")


async def test_only_approved_jurors_read_witnesses(client, db, open_case, make_juror, attorney):
    response = await client.post(
        f"/api/v1/witnesses/case/{open_case.id}",
        json={"witnesses": WITNESSES},
        headers=auth_headers(attorney.id, "attorney"),
    )
    assert response.status_code == 200
    assert len(response.json()["data"]) == 3

    outsider, seated = make_juror(), make_juror()
    db.add(JurorApplication(juror_id=seated.id, case_id=open_case.id, status=ApplicationStatus.approved))
    db.commit()

    response = await client.get(f"/api/v1/witnesses/case/{open_case.id}", headers=auth_headers(outsider.id, "juror"))
    assert response.status_code == 403

    response = await client.get(
        f"/api/v1/witnesses/case/{open_case.id}/export", headers=auth_headers(seated.id, "juror")
    )
    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]
    assert "Witness 2: Tom Hale" in response.text

    response = await client.post(
        f"/api/v1/witnesses/case/{open_case.id}",
        json={"witnesses": []},
        headers=auth_headers(seated.id, "juror"),
    )
    assert response.status_code == 403
