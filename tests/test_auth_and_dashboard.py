from app.auth.security import create_state_token
from app.models.models import Integration


def test_health(client):
    assert client.get("/api/health").json()["ok"] is True


def test_login(client, user):
    r = client.post("/api/auth/login", json={"email": "CRMplomberie", "password": "secret-pass"})
    assert r.status_code == 200
    token = r.json()["token"]
    me = client.get("/api/bootstrap", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200


def test_login_rejects_bad_password(client, user):
    r = client.post("/api/auth/login", json={"email": "CRMplomberie", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Identifiants invalides."


def test_api_requires_a_token(client, user):
    assert client.get("/api/bootstrap").status_code == 401
    assert client.get("/api/bootstrap", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_oauth_state_token_is_not_a_session(client, user):
    headers = {"Authorization": f"Bearer {create_state_token(user.id)}"}
    assert client.get("/api/bootstrap", headers=headers).status_code == 401


def test_create_client_and_service(client, auth_headers):
    r = client.post(
        "/api/clients",
        json={"name": "Jean Martin", "address": "3 rue Haute", "phone": "0611111111", "segment": "VIP", "email": ""},
        headers=auth_headers,
    )
    assert r.status_code == 200
    created = r.json()["client"]
    assert created["lastProject"] == "Nouveau projet"
    assert created["email"] is None

    r = client.post("/api/services", json={"name": "Détartrage", "basePrice": 90}, headers=auth_headers)
    assert r.json()["service"]["base_price"] == 90

    r = client.post("/api/materials", json={"name": "Joint fibre", "price": 2.5}, headers=auth_headers)
    assert r.json()["material"]["price"] == 2.5


def test_incomplete_client_is_rejected(client, auth_headers):
    r = client.post("/api/clients", json={"name": " ", "address": "x", "phone": "y", "segment": "VIP"}, headers=auth_headers)
    assert r.status_code == 422


def test_bootstrap_payload(client, auth_headers, catalog):
    client.post(
        "/api/projects",
        json={"name": "Cuisine", "clientId": catalog["client"].id, "dueDate": "2020-01-01", "status": "Urgent"},
        headers=auth_headers,
    )
    data = client.get("/api/bootstrap", headers=auth_headers).json()
    assert data["user"]["initials"] == "CP"
    payload = data["data"]
    assert payload["laborRate"] == 65
    assert [c["name"] for c in payload["clients"]] == ["Marie Dupont"]
    assert len(payload["services"]) == 1
    assert len(payload["materials"]) == 1
    assert len(payload["integrations"]) == 3
    assert payload["notifications"][0]["label"] == "Nouveau chantier : Cuisine (Urgent)"
    assert [a["label"] for a in payload["alerts"]] == ["Projet urgent : Cuisine", "Projet en retard : Cuisine"]
    assert payload["satisfaction"] == {"score": 4.6, "responses": 0}


def test_toggle_integration(client, auth_headers, db_session, user):
    integration = db_session.query(Integration).filter(Integration.user_id == user.id).first()
    r = client.patch(f"/api/integrations/{integration.id}", json={"enabled": True}, headers=auth_headers)
    assert r.json()["integration"]["enabled"] is True
    assert client.patch("/api/integrations/999", json={"enabled": True}, headers=auth_headers).status_code == 404


def test_google_status_and_disconnect(client, auth_headers):
    assert client.get("/api/google/status", headers=auth_headers).json() == {"connected": False, "configured": False}
    assert client.post("/api/google/disconnect", headers=auth_headers).json() == {"ok": True}


def test_google_connect_needs_configuration(client, auth_headers, user):
    assert client.get("/auth/google").status_code == 400
    token = auth_headers["Authorization"].split()[1]
    r = client.get(f"/auth/google?token={token}", follow_redirects=False)
    assert r.status_code == 400
