def test_health_reports_firestore_and_env(client, monkeypatch):
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "foundernet-test")

    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["firestore"] == "connected"
    assert body["storage"] == "configured"
    assert body["env"]["valid"] is True
    assert body["env"]["missing"] == []


def test_health_without_firestore(client, monkeypatch, no_firestore):
    monkeypatch.delenv("FIREBASE_PROJECT_ID", raising=False)

    body = client.get("/api/health").json()

    assert body["firestore"] == "not_configured"
    assert body["env"]["missing"] == ["FIREBASE_PROJECT_ID"]


def test_health_reports_unconfigured_storage(client, storage):
    storage.available = False

    body = client.get("/api/health").json()

    assert body["status"] == "ok"
    assert body["storage"] == "not_configured"


def test_health_rejects_post(client):
    assert client.post("/api/health").status_code == 405
