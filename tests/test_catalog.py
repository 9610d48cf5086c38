# tests/test_catalog.py
import pytest
from labdesk.catalog.geo import haversine_km


def test_haversine_known_distance():
    # Lucknow to Kanpur is roughly 75 km in a straight line
    assert haversine_km(26.8467, 80.9462, 26.4499, 80.3319) == pytest.approx(76, abs=5)
    assert haversine_km(26.8467, 80.9462, 26.8467, 80.9462) == 0


def test_lab_settings_defaults_until_saved(client, admin_headers):
    defaults = client.get("/api/lab-settings").json()
    assert defaults["latitude"] == pytest.approx(26.8467)
    assert defaults["max_collection_distance"] == 40
    assert client.get("/api/admin/lab-settings", headers=admin_headers).json() is None

    saved = client.post("/api/admin/lab-settings", headers=admin_headers, json={
        "lab_name": "Central Lab", "lab_latitude": 28.6139, "lab_longitude": 77.2090, "max_collection_distance": 15,
    })
    assert saved.status_code == 200, saved.text
    public = client.get("/api/lab-settings").json()
    assert public["lab_name"] == "Central Lab"
    assert public["max_collection_distance"] == 15

    client.post("/api/admin/lab-settings", headers=admin_headers, json={
        "lab_name": "Central Lab 2", "lab_latitude": 28.6, "lab_longitude": 77.2,
    })
    assert client.get("/api/lab-settings").json()["lab_name"] == "Central Lab 2"


def test_calculate_distance(client):
    near = client.post("/api/calculate-distance", json={"user_latitude": 26.85, "user_longitude": 80.95}).json()
    assert near["is_within_range"] is True
    assert near["distance"] < 1

    far = client.post("/api/calculate-distance", json={"user_latitude": 28.6139, "user_longitude": 77.2090}).json()
    assert far["is_within_range"] is False
    assert "not available beyond 40 km" in far["message"]


def test_health_package_pricing(client, admin_headers, lab_tests):
    cbc, lipid = lab_tests
    created = client.post("/api/admin/health-packages", headers=admin_headers, json={
        "name": "Full Body Basic",
        "category": "wellness",
        "test_ids": [cbc.id, lipid.id],
        "report_time": "24 hours",
        "original_price": 1000,
        "discount_percentage": 25,
    })
    assert created.status_code == 200, created.text

    listed = client.get("/api/health-packages", params={"category": "wellness"}).json()
    assert len(listed) == 1
    assert listed[0]["discounted_price"] == 750
    assert listed[0]["savings"] == 250
    assert client.get("/api/health-packages", params={"category": "cardiac"}).json() == []

    detail = client.get(f"/api/health-packages/{created.json()['id']}").json()
    assert {t["code"] for t in detail["tests"]} == {"CBC", "LIPID"}

    client.patch(f"/api/admin/health-packages/{created.json()['id']}", headers=admin_headers,
                 json={"is_active": False})
    assert client.get("/api/health-packages").json() == []
    assert client.get("/api/health-packages/missing").status_code == 404


def test_reviews_need_approval(client, admin_headers):
    bad = client.post("/api/reviews", json={"name": "A", "location": "Lucknow", "rating": 6, "review": "Great"})
    assert bad.status_code == 400

    submitted = client.post("/api/reviews", json={"name": "A", "location": "Lucknow", "rating": 5, "review": "Great"})
    assert submitted.status_code == 200
    review = submitted.json()["review"]
    assert review["is_approved"] is False
    assert client.get("/api/reviews").json() == []

    client.patch(f"/api/admin/reviews/{review['id']}/approve", json={"is_approved": True}, headers=admin_headers)
    assert [r["id"] for r in client.get("/api/reviews").json()] == [review["id"]]

    client.delete(f"/api/admin/reviews/{review['id']}", headers=admin_headers)
    assert client.get("/api/admin/reviews", headers=admin_headers).json() == []


def test_advertisements(client, admin_headers):
    base = {
        "subtitle": "Limited time", "description": "Save on checkups", "gradient": "from-blue-500 to-cyan-500",
        "icon": "heart", "cta_text": "Book now", "cta_link": "/packages",
    }
    second = client.post("/api/admin/advertisements", headers=admin_headers,
                         json={**base, "title": "Second", "sort_order": 2}).json()
    client.post("/api/admin/advertisements", headers=admin_headers, json={**base, "title": "First", "sort_order": 1})
    hidden = client.post("/api/admin/advertisements", headers=admin_headers,
                         json={**base, "title": "Hidden", "is_active": False}).json()

    assert [a["title"] for a in client.get("/api/advertisements").json()] == ["First", "Second"]

    client.patch(f"/api/admin/advertisements/{second['id']}", headers=admin_headers, json={"title": "Renamed"})
    client.delete(f"/api/admin/advertisements/{hidden['id']}", headers=admin_headers)
    titles = [a["title"] for a in client.get("/api/admin/advertisements", headers=admin_headers).json()]
    assert titles == ["First", "Renamed"]


def test_tests_catalog(client, admin_headers):
    payload = {
        "name": "Thyroid Profile", "code": "TSH", "category": "Endocrinology", "price": 450,
        "duration": "24 hours", "parameters": [{"name": "TSH", "unit": "uIU/mL", "normal_range": "0.4-4.0"}],
    }
    created = client.post("/api/admin/tests", headers=admin_headers, json=payload)
    assert created.status_code == 200, created.text
    assert client.post("/api/admin/tests", headers=admin_headers, json=payload).status_code == 400
    assert [t["code"] for t in client.get("/api/tests").json()] == ["TSH"]


def test_admin_patients(client, admin_headers, patient):
    created = client.post("/api/admin/patients", headers=admin_headers, json={"name": "Ravi Kumar", "phone": "9000000050"})
    assert created.status_code == 200
    assert created.json()["patient_code"] != patient.patient_code

    duplicate = client.post("/api/admin/patients", headers=admin_headers, json={"name": "X", "phone": "9000000050"})
    assert duplicate.status_code == 400

    found = client.get("/api/admin/patients", params={"q": "ravi"}, headers=admin_headers).json()
    assert [p["name"] for p in found] == ["Ravi Kumar"]

    details = client.get(f"/api/admin/patients/{patient.id}/details", headers=admin_headers).json()
    assert details["stats"]["total_bookings"] == 0
    assert client.get("/api/admin/patients/unknown/details", headers=admin_headers).status_code == 404
