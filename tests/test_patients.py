from medintake import models

NEW_PATIENT = {
    "firstName": "Maria",
    "lastName": "Garcia",
    "dateOfBirth": "1979-11-02",
    "gender": "female",
    "phoneNumber": "+1 (555) 010-2020",
    "email": "Maria.Garcia@mail.com",
    "medicalHistory": "Asthma",
}


def test_create_patient_records_creator(client, doctor, auth_headers, db):
    r = client.post("/api/patients", json=NEW_PATIENT, headers=auth_headers(doctor))
    assert r.status_code == 201
    patient = r.json()["patient"]
    assert patient["firstName"] == "Maria"
    assert patient["dateOfBirth"] == "1979-11-02"
    assert patient["email"] == "maria.garcia@mail.com"
    assert patient["createdBy"] == str(doctor.id)

    assert db.query(models.Patient).count() == 1


def test_create_patient_requires_authentication(client):
    r = client.post("/api/patients", json=NEW_PATIENT)
    assert r.status_code == 401


def test_duplicate_patient_conflicts(client, doctor, auth_headers):
    headers = auth_headers(doctor)
    assert client.post("/api/patients", json=NEW_PATIENT, headers=headers).status_code == 201
    r = client.post("/api/patients", json={**NEW_PATIENT, "email": None}, headers=headers)
    assert r.status_code == 409
    assert r.json()["error"] == "Patient already exists"


def test_create_patient_validation(client, doctor, auth_headers, db):
    bad = {**NEW_PATIENT, "firstName": "M", "gender": "unknown", "phoneNumber": "call me"}
    r = client.post("/api/patients", json=bad, headers=auth_headers(doctor))
    assert r.status_code == 400
    fields = {d["field"] for d in r.json()["details"]}
    assert {"firstName", "gender", "phoneNumber"} <= fields
    assert db.query(models.Patient).count() == 0


def test_list_pagination_second_page(client, doctor, make_patient, auth_headers):
    for _ in range(25):
        make_patient(doctor)

    r = client.get("/api/patients?page=2&limit=10", headers=auth_headers(doctor))
    assert r.status_code == 200
    body = r.json()
    assert len(body["patients"]) == 10
    assert body["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalCount": 25,
        "limit": 10,
        "hasNext": True,
        "hasPrev": True,
    }


def test_list_rejects_out_of_range_limit(client, doctor, auth_headers):
    r = client.get("/api/patients?limit=101", headers=auth_headers(doctor))
    assert r.status_code == 400
    r = client.get("/api/patients?page=0", headers=auth_headers(doctor))
    assert r.status_code == 400


def test_list_search_and_soft_deleted_hidden(client, doctor, make_patient, auth_headers):
    make_patient(doctor, first_name="Alice", last_name="Walker")
    make_patient(doctor, first_name="Bob", last_name="Walker")
    make_patient(doctor, first_name="Carol", last_name="Stone", is_deleted=True)

    headers = auth_headers(doctor)
    body = client.get("/api/patients?search=walk", headers=headers).json()
    assert {p["firstName"] for p in body["patients"]} == {"Alice", "Bob"}

    body = client.get("/api/patients", headers=headers).json()
    assert body["pagination"]["totalCount"] == 2


def test_get_patient_includes_creator_summary(client, doctor, make_patient, auth_headers):
    patient = make_patient(doctor)
    r = client.get(f"/api/patients/{patient.id}", headers=auth_headers(doctor))
    assert r.status_code == 200
    creator = r.json()["patient"]["createdByUser"]
    assert creator == {"firstName": "Test", "lastName": "Doctor", "role": "doctor"}


def test_get_missing_patient(client, doctor, auth_headers):
    r = client.get("/api/patients/00000000-0000-0000-0000-000000000000", headers=auth_headers(doctor))
    assert r.status_code == 404
    assert r.json() == {"error": "Patient not found", "message": "Patient record not found"}


def test_get_patient_with_malformed_id(client, doctor, auth_headers):
    r = client.get("/api/patients/not-a-uuid", headers=auth_headers(doctor))
    assert r.status_code == 400


def test_update_patient_merges_fields(client, doctor, make_personnel, make_patient, auth_headers):
    nurse = make_personnel(models.Role.nurse)
    patient = make_patient(doctor, address="1 Old Road")

    r = client.put(
        f"/api/patients/{patient.id}",
        json={"medicalHistory": "Penicillin allergy", "gender": None},
        headers=auth_headers(nurse),
    )
    assert r.status_code == 200
    updated = r.json()["patient"]
    assert updated["medicalHistory"] == "Penicillin allergy"
    assert updated["address"] == "1 Old Road"
    assert updated["gender"] == "female"
    assert updated["updatedBy"] == str(nurse.id)


def test_update_missing_patient(client, doctor, auth_headers):
    r = client.put(
        "/api/patients/00000000-0000-0000-0000-000000000000",
        json={"address": "Nowhere"},
        headers=auth_headers(doctor),
    )
    assert r.status_code == 404


def test_patient_stats(client, doctor, make_patient, auth_headers):
    make_patient(doctor, gender=models.Gender.male)
    make_patient(doctor, gender=models.Gender.female)
    make_patient(doctor, gender=models.Gender.female)
    make_patient(doctor, gender=models.Gender.other, is_deleted=True)

    r = client.get("/api/patients/stats/overview", headers=auth_headers(doctor))
    assert r.status_code == 200
    stats = r.json()["stats"]
    assert stats["totalPatients"] == 3
    assert stats["genderDistribution"] == {"male": 1, "female": 2}
    assert stats["recentPatients"] == 3
    assert "lastUpdated" in stats


def test_collection_routes_answer_without_redirect(client, doctor, auth_headers):
    headers = auth_headers(doctor)
    r = client.post("/api/patients", json=NEW_PATIENT, headers=headers, follow_redirects=False)
    assert r.status_code == 201
    r = client.get("/api/patients", headers=headers, follow_redirects=False)
    assert r.status_code == 200
