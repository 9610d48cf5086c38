# tests/test_walkin.py
import pytest
from labdesk.db import models

BASE = "/api/admin/walkin-collections"


@pytest.fixture
def collection(client, admin_headers, patient, lab_tests):
    cbc, lipid = lab_tests
    response = client.post(BASE, headers=admin_headers, json={
        "patient_id": patient.id,
        "doctor_name": "Dr. Mehta",
        "doctor_clinic": "City Clinic",
        "test_ids": [cbc.id, lipid.id],
    })
    assert response.status_code == 201, response.text
    return response.json()


def test_create_collection_tracks_every_test(collection, lab_tests):
    cbc, lipid = lab_tests
    assert collection["status"] == "pending"
    assert [(r["test_id"], r["status"]) for r in collection["test_report_status"]] == [
        (cbc.id, "pending"),
        (lipid.id, "pending"),
    ]


def test_collection_moves_to_processing_then_report_ready(client, admin_headers, collection, patient, lab_tests,
                                                          entry, db):
    cbc, lipid = lab_tests
    url = f"{BASE}/{collection['id']}/tests"

    first = client.post(f"{url}/{cbc.id}/report", json=entry(finalize=True), headers=admin_headers)
    assert first.status_code == 200, first.text
    assert first.json()["collection"]["status"] == "processing"
    assert first.json()["report"]["booking_id"] is None

    client.post(f"{url}/{lipid.id}/report", json=entry(value="180"), headers=admin_headers)
    done = client.patch(f"{url}/{lipid.id}/finalize", headers=admin_headers)
    assert done.json()["all_completed"] is True
    assert done.json()["collection"]["status"] == "report_ready"

    notes = db.query(models.Notification).filter_by(
        patient_id=patient.id, type=models.NotificationType.report_ready
    ).count()
    assert notes == 2

    # walk-in reports have no booking, so they download straight away
    assert client.get(done.json()["download_url"]).status_code == 200


def test_collection_rejects_tests_it_does_not_contain(client, admin_headers, db, patient, lab_tests, entry):
    cbc, lipid = lab_tests
    created = client.post(BASE, headers=admin_headers, json={"patient_id": patient.id, "test_ids": [cbc.id]}).json()
    response = client.post(f"{BASE}/{created['id']}/tests/{lipid.id}/report", json=entry(), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Test not part of this collection"


def test_collection_needs_tests(client, admin_headers, patient):
    response = client.post(BASE, headers=admin_headers, json={"patient_id": patient.id, "test_ids": []})
    assert response.status_code == 400


def test_collection_details_and_status(client, admin_headers, collection):
    details = client.get(f"{BASE}/{collection['id']}", headers=admin_headers).json()
    assert details["patient"]["name"] == "Asha Verma"
    assert {t["code"] for t in details["tests"]} == {"CBC", "LIPID"}

    updated = client.patch(f"{BASE}/{collection['id']}/status", json={"status": "processing"}, headers=admin_headers)
    assert updated.json()["status"] == "processing"


def test_collection_cannot_finish_before_every_test_is_finalized(client, admin_headers, collection, patient,
                                                                  lab_tests, entry, db):
    cbc, lipid = lab_tests
    url = f"{BASE}/{collection['id']}/tests"
    client.post(f"{url}/{cbc.id}/report", json=entry(finalize=True), headers=admin_headers)

    for early in ("report_ready", "completed"):
        response = client.patch(f"{BASE}/{collection['id']}/status", json={"status": early}, headers=admin_headers)
        assert response.status_code == 400

    done = client.post(f"{url}/{lipid.id}/report", json=entry(value="180", finalize=True), headers=admin_headers)
    assert done.json()["collection"]["status"] == "report_ready"
    notes = db.query(models.Notification).filter_by(
        patient_id=patient.id, type=models.NotificationType.report_ready
    ).count()
    assert notes == 2

    finished = client.patch(f"{BASE}/{collection['id']}/status", json={"status": "completed"}, headers=admin_headers)
    assert finished.json()["status"] == "completed"


def test_report_ready_set_early_still_notifies_on_completion(client, admin_headers, collection, patient,
                                                             lab_tests, entry, db):
    cbc, lipid = lab_tests
    url = f"{BASE}/{collection['id']}/tests"
    client.post(f"{url}/{cbc.id}/report", json=entry(finalize=True), headers=admin_headers)

    # set directly, bypassing the status endpoint
    stored = db.get(models.WalkinCollection, collection["id"])
    stored.status = models.WalkinStatus.report_ready
    db.commit()

    done = client.post(f"{url}/{lipid.id}/report", json=entry(value="180", finalize=True), headers=admin_headers)
    assert done.json()["all_completed"] is True
    notes = db.query(models.Notification).filter_by(
        patient_id=patient.id, type=models.NotificationType.report_ready
    ).count()
    assert notes == 2


def test_delete_collection(client, admin_headers, collection, db):
    response = client.delete(f"{BASE}/{collection['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"{BASE}/{collection['id']}", headers=admin_headers).status_code == 404
    assert db.query(models.TestReportStatus).count() == 0
    assert client.get(BASE, headers=admin_headers).json() == []
