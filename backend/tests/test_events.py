def test_create_event(client, users):
    res = client.post("/api/events", json={
        "name": "Goa trip", "currency": "usd", "settlement_currency": "inr"
    }, headers=users["alice"]["headers"])
    assert res.status_code == 200
    data = res.json()
    assert data["currency"] == "USD"
    assert data["settlement_currency"] == "INR"
    assert data["status"] == "active"
    assert data["admin_ids"] == [users["alice"]["id"]]
    assert data["participant_ids"] == [users["alice"]["id"]]


def test_predefined_rates_must_be_positive(client, users):
    res = client.post("/api/events", json={
        "name": "Trip", "currency": "USD", "settlement_currency": "INR",
        "fx_rate_mode": "predefined", "predefined_fx_rates": {"USD_INR": 0},
    }, headers=users["alice"]["headers"])
    assert res.status_code == 400


def test_list_events_only_shows_own(client, users, event_id):
    client.post("/api/events", json={"name": "Solo", "currency": "EUR"}, headers=users["alice"]["headers"])
    res = client.get("/api/events", headers=users["bob"]["headers"])
    assert [e["id"] for e in res.json()] == [event_id]
    res = client.get("/api/events", headers=users["alice"]["headers"])
    assert len(res.json()) == 2


def test_add_participant(client, users, event_id):
    res = client.get(f"/api/events/{event_id}", headers=users["bob"]["headers"])
    assert res.status_code == 200
    assert len(res.json()["participants"]) == 3


def test_add_unknown_participant(client, users, event_id):
    res = client.post(f"/api/events/{event_id}/participants", json={
        "email": "nobody@example.com"
    }, headers=users["alice"]["headers"])
    assert res.status_code == 404


def test_only_admins_add_participants(client, users, event_id):
    res = client.post(f"/api/events/{event_id}/participants", json={
        "email": "test@example.com"
    }, headers=users["bob"]["headers"])
    assert res.status_code == 403


def test_add_participant_as_admin(client, users, event_id):
    res = client.post(f"/api/events/{event_id}/participants", json={
        "email": "bob@example.com", "admin": True
    }, headers=users["alice"]["headers"])
    assert users["bob"]["id"] in res.json()["admin_ids"]
    res = client.patch(f"/api/events/{event_id}", json={"name": "Goa 2026"}, headers=users["bob"]["headers"])
    assert res.status_code == 200
    assert res.json()["name"] == "Goa 2026"


def test_outsider_cannot_see_event(client, users, event_id, auth_headers):
    res = client.get(f"/api/events/{event_id}", headers=auth_headers)
    assert res.status_code == 403


def test_missing_event(client, users):
    res = client.get("/api/events/999", headers=users["alice"]["headers"])
    assert res.status_code == 404


def test_update_event_requires_admin(client, users, event_id):
    res = client.patch(f"/api/events/{event_id}", json={"name": "Mine now"}, headers=users["bob"]["headers"])
    assert res.status_code == 403


def test_update_event(client, users, event_id):
    res = client.patch(f"/api/events/{event_id}", json={
        "settlement_currency": "eur", "fx_rate_mode": "predefined", "predefined_fx_rates": {"USD_EUR": 0.9}
    }, headers=users["alice"]["headers"])
    assert res.status_code == 200
    data = res.json()
    assert data["settlement_currency"] == "EUR"
    assert data["fx_rate_mode"] == "predefined"
    assert data["predefined_fx_rates"] == {"USD_EUR": 0.9}


def test_delete_event(client, users, event_id):
    res = client.delete(f"/api/events/{event_id}", headers=users["bob"]["headers"])
    assert res.status_code == 403
    res = client.delete(f"/api/events/{event_id}", headers=users["alice"]["headers"])
    assert res.status_code == 204
    res = client.get(f"/api/events/{event_id}", headers=users["alice"]["headers"])
    assert res.status_code == 404
