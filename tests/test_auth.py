from datetime import datetime, timedelta

from medintake import models

PASSWORD = "Secret123"

SIGNUP = {
    "email": "Dr.Who@Hospital.org",
    "password": "Tardis2024",
    "firstName": "John",
    "lastName": "Smith",
    "role": "doctor",
    "licenseNumber": "MD-12345",
}


def test_signup_creates_account_and_returns_token(client, app):
    r = client.post("/api/auth/signup", json=SIGNUP)
    assert r.status_code == 201
    body = r.json()
    assert body["user"]["email"] == "dr.who@hospital.org"
    assert body["user"]["firstName"] == "John"
    assert body["user"]["role"] == "doctor"
    assert "passwordHash" not in body["user"]

    claims = app.state.token_service.verify(body["token"])
    assert claims.sub == body["user"]["id"]
    assert claims.role is models.Role.doctor


def test_second_signup_with_same_email_conflicts(client):
    assert client.post("/api/auth/signup", json=SIGNUP).status_code == 201
    r = client.post("/api/auth/signup", json={**SIGNUP, "email": "dr.who@hospital.org"})
    assert r.status_code == 409
    assert r.json()["error"] == "User already exists"


def test_signup_validation_errors_are_reported_per_field(client, db):
    r = client.post("/api/auth/signup", json={**SIGNUP, "password": "weakpass", "role": "janitor"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation failed"
    fields = {d["field"] for d in body["details"]}
    assert {"password", "role"} <= fields
    assert db.query(models.MedicalPersonnel).count() == 0


def test_signin_returns_token_and_stamps_last_login(client, make_personnel, db):
    user = make_personnel(models.Role.nurse, email="nurse@hospital.org")
    assert user.last_login is None

    r = client.post("/api/auth/signin", json={"email": "NURSE@hospital.org", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["token"]
    assert r.json()["user"]["id"] == str(user.id)

    db.expire_all()
    assert db.get(models.MedicalPersonnel, user.id).last_login is not None


def test_signin_with_wrong_password_is_rejected_without_side_effects(client, make_personnel, db):
    admin = make_personnel(models.Role.admin, email="admin@x.com")

    r = client.post("/api/auth/signin", json={"email": "admin@x.com", "password": "wrong"})
    assert r.status_code == 401
    body = r.json()
    assert body["error"] == "Invalid credentials"
    assert "token" not in body

    db.expire_all()
    assert db.get(models.MedicalPersonnel, admin.id).last_login is None


def test_signin_unknown_email(client):
    r = client.post("/api/auth/signin", json={"email": "ghost@hospital.org", "password": PASSWORD})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid credentials"


def test_signin_inactive_account_is_forbidden(client, make_personnel):
    make_personnel(email="gone@hospital.org", active=False)
    r = client.post("/api/auth/signin", json={"email": "gone@hospital.org", "password": PASSWORD})
    assert r.status_code == 403
    assert r.json()["error"] == "Account deactivated"


def test_profile_requires_token(client):
    r = client.get("/api/auth/profile")
    assert r.status_code == 401
    assert r.json()["error"] == "Access token required"


def test_profile_rejects_malformed_token(client):
    r = client.get("/api/auth/profile", headers={"Authorization": "Bearer nonsense"})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid token"


def test_profile_rejects_expired_token(client, app, doctor):
    token = app.state.token_service.issue(doctor, issued_at=datetime.utcnow() - timedelta(hours=25))
    r = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["error"] == "Token expired"


def test_profile_returns_current_user(client, doctor, auth_headers):
    r = client.get("/api/auth/profile", headers=auth_headers(doctor))
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["id"] == str(doctor.id)
    assert user["email"] == doctor.email
    assert "createdAt" in user


def test_deactivated_identity_with_valid_token_is_forbidden(client, doctor, auth_headers, db):
    headers = auth_headers(doctor)
    assert client.get("/api/auth/profile", headers=headers).status_code == 200

    doctor.is_active = False
    db.commit()

    r = client.get("/api/auth/profile", headers=headers)
    assert r.status_code == 403
    assert r.json()["error"] == "Account deactivated"
    assert client.post("/api/auth/refresh", headers=headers).status_code == 403


def test_removed_identity_token_is_unauthenticated(client, doctor, auth_headers, db):
    headers = auth_headers(doctor)
    db.delete(doctor)
    db.commit()

    r = client.get("/api/auth/profile", headers=headers)
    assert r.status_code == 401


def test_refresh_issues_new_token_for_same_identity(client, app, doctor, auth_headers):
    r = client.post("/api/auth/refresh", headers=auth_headers(doctor))
    assert r.status_code == 200
    claims = app.state.token_service.verify(r.json()["token"])
    assert claims.sub == str(doctor.id)
    assert claims.email == doctor.email


def test_logout_is_stateless(client, doctor, auth_headers):
    headers = auth_headers(doctor)
    r = client.post("/api/auth/logout", headers=headers)
    assert r.status_code == 200
    assert r.json()["message"] == "Logout successful"
    # no revocation list: the token keeps working until it expires
    assert client.get("/api/auth/profile", headers=headers).status_code == 200


def test_optional_auth_endpoint_personalizes_without_requiring_identity(client, doctor, auth_headers):
    anon = client.get("/api")
    assert anon.status_code == 200
    assert anon.json()["authenticated"] is False

    bad = client.get("/api", headers={"Authorization": "Bearer broken"})
    assert bad.status_code == 200
    assert bad.json()["authenticated"] is False

    known = client.get("/api", headers=auth_headers(doctor))
    assert known.json()["authenticated"] is True
    assert known.json()["user"] == doctor.email


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_optional_auth_treats_expired_token_as_anonymous(client, app, doctor):
    token = app.state.token_service.issue(doctor, issued_at=datetime.utcnow() - timedelta(hours=25))
    r = client.get("/api", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["authenticated"] is False
    assert r.json()["user"] is None


def test_optional_auth_treats_deactivated_identity_as_anonymous(client, doctor, auth_headers, db):
    headers = auth_headers(doctor)
    doctor.is_active = False
    db.commit()

    r = client.get("/api", headers=headers)
    assert r.status_code == 200
    assert r.json()["authenticated"] is False


def test_optional_auth_treats_removed_identity_as_anonymous(client, doctor, auth_headers, db):
    headers = auth_headers(doctor)
    db.delete(doctor)
    db.commit()

    r = client.get("/api", headers=headers)
    assert r.status_code == 200
    assert r.json()["authenticated"] is False
