# tests/test_auth.py
from labdesk.db import models


def test_admin_routes_need_a_token(client):
    response = client.get("/api/admin/bookings")
    assert response.status_code == 401


def test_invalid_token_is_unauthorized(client):
    response = client.get("/api/admin/bookings", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_patient_token_is_forbidden_on_admin_routes(client, patient_headers):
    response = client.get("/api/admin/bookings", headers=patient_headers)
    assert response.status_code == 403


def test_admin_token_is_forbidden_on_patient_routes(client, admin_headers):
    response = client.get("/api/patient/bookings", headers=admin_headers)
    assert response.status_code == 403


def test_admin_login(client, admin):
    ok = client.post("/api/admin/login", json={"username": "admin", "password": "secret123"})
    assert ok.status_code == 200
    assert ok.json()["admin"]["username"] == "admin"
    token = ok.json()["token"]
    assert client.get("/api/admin/bookings", headers={"Authorization": f"Bearer {token}"}).status_code == 200

    bad = client.post("/api/admin/login", json={"username": "admin", "password": "wrong"})
    assert bad.status_code == 401


def test_validation_errors_are_bad_requests(client):
    response = client.post("/api/bookings", json={"phone": "9000000001"})
    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "Validation failed"
    assert body["errors"]


def test_email_registration_requires_verification(client, db):
    registered = client.post("/api/auth/register-email", json={
        "name": "Meera",
        "phone": "9000000009",
        "email": "meera@example.com",
        "password": "hunter22",
    })
    assert registered.status_code == 200, registered.text
    assert registered.json()["patient"]["patient_code"].startswith("LAB-")

    login = client.post("/api/auth/login-email", json={"email": "meera@example.com", "password": "hunter22"})
    assert login.status_code == 403

    otp = db.query(models.Otp).filter_by(contact="meera@example.com", purpose="email_verification").one()
    verified = client.post("/api/auth/verify-email", json={"email": "meera@example.com", "otp": otp.code})
    assert verified.status_code == 200
    assert verified.json()["patient"]["email_verified"] is True

    login = client.post("/api/auth/login-email", json={"email": "meera@example.com", "password": "hunter22"})
    assert login.status_code == 200
    headers = {"Authorization": f"Bearer {login.json()['token']}"}
    assert client.get("/api/patient/bookings", headers=headers).json() == []


def test_otp_attempts_are_limited(client, db):
    client.post("/api/auth/register", json={"name": "Kiran", "phone": "9000000010"})
    otp = db.query(models.Otp).filter_by(contact="9000000010", purpose="login").one()
    wrong = "000000" if otp.code != "000000" else "111111"

    for _ in range(3):
        response = client.post("/api/auth/verify-otp", json={"contact": "9000000010", "purpose": "login", "otp": wrong})
        assert response.status_code == 400

    response = client.post("/api/auth/verify-otp", json={"contact": "9000000010", "purpose": "login", "otp": otp.code})
    assert response.status_code == 400


def test_phone_otp_login(client, db):
    client.post("/api/auth/register", json={"name": "Kiran", "phone": "9000000011"})
    otp = db.query(models.Otp).filter_by(contact="9000000011", purpose="login").one()
    response = client.post("/api/auth/verify-otp", json={"contact": "9000000011", "purpose": "login", "otp": otp.code})
    assert response.status_code == 200
    assert response.json()["patient"]["phone"] == "9000000011"


def test_password_reset(client, db, patient):
    client.post("/api/auth/forgot-password", json={"email": "asha@example.com"})
    otp = db.query(models.Otp).filter_by(contact="asha@example.com", purpose="password_reset").one()
    reset = client.post("/api/auth/reset-password", json={
        "email": "asha@example.com", "otp": otp.code, "new_password": "newpass1",
    })
    assert reset.status_code == 200
    db.refresh(patient)
    patient.email_verified = True
    db.commit()
    login = client.post("/api/auth/login-email", json={"email": "asha@example.com", "password": "newpass1"})
    assert login.status_code == 200


def test_profile_update(client, patient_headers):
    response = client.patch("/api/profile", json={"address": "12 MG Road"}, headers=patient_headers)
    assert response.status_code == 200
    assert response.json()["address"] == "12 MG Road"
