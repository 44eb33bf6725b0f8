def test_health_check(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["uptime"] >= 0
    assert body["oracle_running"] is False


def test_root(client):
    body = client.get("/").json()
    assert body["name"] == "Trap Oracle"
    assert body["docs"] == "/docs"
