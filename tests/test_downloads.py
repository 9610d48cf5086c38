# tests/test_downloads.py
from datetime import datetime
from labdesk.db import models


def _finalize(client, booking_id, test_id, headers, entry):
    response = client.post(f"/api/admin/bookings/{booking_id}/tests/{test_id}/report",
                           json=entry(finalize=True), headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_download_waits_for_payment_verification(client, book, admin_headers, patient, patient_headers,
                                                 lab_tests, entry):
    cbc, _ = lab_tests
    booking = book([cbc.id], headers=patient_headers, payment_method="upi")
    assert booking["payment_status"] == "paid_unverified"
    saved = _finalize(client, booking["id"], cbc.id, admin_headers, entry)
    url = saved["download_url"]

    blocked = client.get(url)
    assert blocked.status_code == 403
    assert "Payment is not verified" in blocked.json()["detail"]

    verified = client.patch(f"/api/admin/bookings/{booking['id']}/verify-payment", headers=admin_headers)
    assert verified.status_code == 200

    page = client.get(url)
    assert page.status_code == 200
    assert page.headers["content-type"].startswith("text/html")
    assert patient.patient_code in page.text
    assert "Complete Blood Count" in page.text
    assert "Hemoglobin" in page.text


def test_cash_bookings_download_immediately(client, book, admin_headers, patient_headers, lab_tests, entry):
    cbc, _ = lab_tests
    booking = book([cbc.id], headers=patient_headers, payment_method="cash_on_delivery")
    saved = _finalize(client, booking["id"], cbc.id, admin_headers, entry)
    assert client.get(saved["download_url"]).status_code == 200


def test_abnormal_values_are_marked(client, book, admin_headers, patient_headers, lab_tests, entry):
    cbc, _ = lab_tests
    booking = book([cbc.id], headers=patient_headers, payment_method="pay_at_lab")
    saved = client.post(f"/api/admin/bookings/{booking['id']}/tests/{cbc.id}/report",
                        json=entry(value="19.4", finalize=True), headers=admin_headers).json()
    page = client.get(saved["download_url"])
    assert 'class="abnormal"' in page.text


def test_unknown_token_is_not_found(client):
    response = client.get("/api/reports/download/" + "0" * 64)
    assert response.status_code == 404


def test_report_without_booking_is_always_downloadable(client, db, patient, lab_tests):
    cbc, _ = lab_tests
    result = models.Result(
        patient_id=patient.id,
        test_id=cbc.id,
        parameter_results=[{"parameter_name": "Hemoglobin", "value": "14", "unit": "g/dL",
                            "normal_range": "13-17", "is_abnormal": False}],
        technician="R. Singh",
        collected_at=datetime.utcnow(),
    )
    db.add(result)
    db.flush()
    report = models.Report(patient_id=patient.id, result_id=result.id, secure_download_token="a" * 64)
    db.add(report)
    db.commit()

    assert client.get("/api/reports/download/" + "a" * 64).status_code == 200


def test_patient_report_listing_withholds_token_until_paid(client, book, admin_headers, patient_headers,
                                                           lab_tests, entry):
    cbc, _ = lab_tests
    booking = book([cbc.id], headers=patient_headers, payment_method="net_banking")
    _finalize(client, booking["id"], cbc.id, admin_headers, entry)

    group = client.get("/api/patient/reports", headers=patient_headers).json()[0]
    assert group["booking_id"] == booking["id"]
    assert group["payment_verified"] is False
    assert group["reports"][0]["secure_download_token"] is None

    client.patch(f"/api/admin/bookings/{booking['id']}/verify-payment", headers=admin_headers)
    group = client.get("/api/patient/reports", headers=patient_headers).json()[0]
    assert group["payment_verified"] is True
    assert len(group["reports"][0]["secure_download_token"]) == 64


def test_admin_generated_report(client, admin_headers, patient, lab_tests):
    cbc, _ = lab_tests
    response = client.post("/api/admin/reports/generate", headers=admin_headers, json={
        "patient_id": patient.id,
        "test_id": cbc.id,
        "technician": "R. Singh",
        "collected_at": "2026-10-01T08:00:00",
        "parameter_results": [{"parameter_name": "Hemoglobin", "value": "12", "normal_range": "13-17"}],
    })
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["report"]["booking_id"] is None
    assert body["result"]["parameter_results"][0]["is_abnormal"] is True
    assert client.get(body["download_url"]).status_code == 200

    listed = client.get("/api/admin/reports", headers=admin_headers).json()
    assert listed[0]["test"]["code"] == "CBC"
