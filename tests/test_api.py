from unittest.mock import MagicMock

import pytest

from conftest import LEADER_HEADERS

BOSS = {"name": "LYTHEA", "level": 93, "location": "MAP 18", "respawn_time_hours": 2}
MEMBER = {
    "name": "Alice",
    "password": "s3cret",
    "level": 70,
    "character_class": "MAGE",
    "power": 1500.5,
}


@pytest.fixture
def boss_id(client):
    response = client.post("/api/bosses", json=BOSS, headers=LEADER_HEADERS)
    assert response.status_code == 201
    return response.json()["id"]


def activity_count(client):
    return len(client.get("/api/activities").json())


def test_root_and_health(client):
    assert "Running" in client.get("/").json()["message"]
    assert client.get("/health").text == "ok"


@pytest.mark.parametrize(
    "headers, status",
    [
        ({}, 401),
        ({"Authorization": "Basic abc"}, 401),
        ({"Authorization": "Bearer not-json"}, 401),
        ({"Authorization": 'Bearer {"is_leader": false}'}, 403),
    ],
)
def test_privileged_routes_need_capability(client, headers, status):
    response = client.post("/api/bosses", json=BOSS, headers=headers)
    assert response.status_code == status
    assert client.get("/api/bosses").json() == []


def test_admin_flag_is_enough(client):
    headers = {"Authorization": 'Bearer {"is_admin": true}'}
    assert client.post("/api/bosses", json=BOSS, headers=headers).status_code == 201


def test_create_boss_returns_timer_fields(client):
    body = client.post("/api/bosses", json=BOSS, headers=LEADER_HEADERS).json()
    assert body["is_alive"] is True
    assert body["effective_alive"] is True
    assert body["status"] == "alive"
    assert body["time_remaining_ms"] == 0
    assert body["time_remaining"] == "00:00:00"
    assert body["progress_percent"] == 0
    assert "password" not in body


@pytest.mark.parametrize(
    "payload",
    [
        {**BOSS, "level": 0},
        {**BOSS, "respawn_time_hours": 0},
        {key: value for key, value in BOSS.items() if key != "name"},
        {**BOSS, "name": ""},
    ],
)
def test_invalid_boss_is_rejected_without_side_effects(client, payload):
    response = client.post("/api/bosses", json=payload, headers=LEADER_HEADERS)
    assert response.status_code == 422
    assert client.get("/api/bosses").json() == []
    assert activity_count(client) == 0


def test_bosses_listed_by_name(client):
    for name in ("Zed", "alpha", "Mid"):
        client.post("/api/bosses", json={**BOSS, "name": name}, headers=LEADER_HEADERS)
    assert [b["name"] for b in client.get("/api/bosses").json()] == ["alpha", "Mid", "Zed"]


def test_kill_then_poll(client, clock, boss_id):
    response = client.post(f"/api/bosses/{boss_id}/kill", json={"killed_by": "Alice"}, headers=LEADER_HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["is_alive"] is False
    assert body["last_killed_by"] == "Alice"
    assert body["time_remaining"] == "02:00:00"
    assert body["status"] == "dead"

    clock.advance(hours=1)
    body = client.get(f"/api/bosses/{boss_id}").json()
    assert body["time_remaining_ms"] == 3_600_000
    assert body["progress_percent"] == pytest.approx(50)

    clock.advance(minutes=55)
    assert client.get(f"/api/bosses/{boss_id}").json()["status"] == "soon"

    clock.advance(hours=1)
    body = client.get(f"/api/bosses/{boss_id}").json()
    assert body["is_alive"] is False
    assert body["effective_alive"] is True
    assert body["progress_percent"] == 100

    latest = client.get("/api/activities").json()[0]
    assert latest["type"] == "boss_killed"
    assert "Alice" in latest["description"]
    assert latest["boss_id"] == boss_id
    assert latest["time_ago"] == "2 hours ago"


def test_kill_without_body(client, boss_id):
    response = client.post(f"/api/bosses/{boss_id}/kill", headers=LEADER_HEADERS)
    assert response.status_code == 200
    assert response.json()["last_killed_by"] is None


def test_kill_unknown_boss(client, boss_id):
    before = activity_count(client)
    response = client.post("/api/bosses/unknown/kill", json={"killed_by": "Alice"}, headers=LEADER_HEADERS)
    assert response.status_code == 404
    assert activity_count(client) == before


def test_revive(client, boss_id):
    client.post(f"/api/bosses/{boss_id}/kill", headers=LEADER_HEADERS)
    body = client.post(f"/api/bosses/{boss_id}/revive", headers=LEADER_HEADERS).json()
    assert body["is_alive"] is True
    assert body["last_killed_at"] is None
    assert body["time_remaining_ms"] == 0
    assert client.get("/api/activities").json()[0]["type"] == "boss_spawned"
    assert client.post("/api/bosses/unknown/revive", headers=LEADER_HEADERS).status_code == 404


def test_update_boss(client, boss_id):
    response = client.put(f"/api/bosses/{boss_id}", json={"level": 95, "icon_color": "blue"}, headers=LEADER_HEADERS)
    assert response.status_code == 200
    assert response.json()["level"] == 95
    assert response.json()["icon_color"] == "blue"

    assert client.put(f"/api/bosses/{boss_id}", json={"is_alive": False}, headers=LEADER_HEADERS).status_code == 422
    assert client.put("/api/bosses/unknown", json={"level": 3}, headers=LEADER_HEADERS).status_code == 404


def test_delete_boss_keeps_history(client, boss_id):
    client.post(f"/api/bosses/{boss_id}/kill", headers=LEADER_HEADERS)
    assert client.delete(f"/api/bosses/{boss_id}", headers=LEADER_HEADERS).status_code == 204
    assert client.get(f"/api/bosses/{boss_id}").status_code == 404
    assert client.delete(f"/api/bosses/{boss_id}", headers=LEADER_HEADERS).status_code == 404

    response = client.get("/api/activities")
    assert response.status_code == 200
    assert [a["type"] for a in response.json()][:1] == ["boss_deleted"]
    assert sum(1 for a in response.json() if a["boss_id"] == boss_id) == 3


def test_batch_create(client):
    payload = {"bosses": [BOSS, {**BOSS, "name": "OSTIAR", "respawn_time_hours": 1}]}
    response = client.post("/api/bosses/batch", json=payload, headers=LEADER_HEADERS)
    assert response.status_code == 201
    assert len(response.json()) == 2

    bad = {"bosses": [BOSS, {**BOSS, "level": -1}]}
    assert client.post("/api/bosses/batch", json=bad, headers=LEADER_HEADERS).status_code == 422
    assert len(client.get("/api/bosses").json()) == 2


def test_summary(client, clock):
    ids = [
        client.post("/api/bosses", json={**BOSS, "name": f"B{n}"}, headers=LEADER_HEADERS).json()["id"]
        for n in range(3)
    ]
    client.post(f"/api/bosses/{ids[0]}/kill", headers=LEADER_HEADERS)
    clock.advance(minutes=90)
    client.post(f"/api/bosses/{ids[1]}/kill", headers=LEADER_HEADERS)
    client.post("/api/members", json={**MEMBER, "status": "online"})

    summary = client.get("/api/bosses/summary").json()
    assert summary == {
        "total_bosses": 3,
        "bosses_alive": 1,
        "active_timers": 2,
        "upcoming_spawns": 1,
        "spawning_soon": 0,
        "total_members": 1,
        "members_online": 1,
    }


# --- members ---

def test_register_and_login(client):
    response = client.post("/api/members", json=MEMBER)
    assert response.status_code == 201
    assert "password" not in response.json()
    assert response.json()["dkp"] == 0

    assert client.post("/api/members", json={**MEMBER, "name": "ALICE"}).status_code == 409

    login = client.post("/api/login", json={"name": "alice", "password": "s3cret"})
    assert login.status_code == 200
    assert login.json()["is_leader"] is False
    assert login.json()["is_admin"] is False
    assert "password" not in login.json()

    assert client.post("/api/login", json={"name": "Alice", "password": "nope"}).status_code == 401
    assert client.post("/api/login", json={"name": "Alice"}).status_code == 422


def test_admin_name_cannot_be_registered(client):
    response = client.post("/api/members", json={**MEMBER, "name": "KURAMA"})
    assert response.status_code == 409
    assert client.post("/api/login", json={"name": "KURAMA", "password": "s3cret"}).status_code == 401

    member_id = client.post("/api/members", json=MEMBER).json()["id"]
    renamed = client.put(f"/api/members/{member_id}", json={"name": "kurama"}, headers=LEADER_HEADERS)
    assert renamed.status_code == 409

    login = client.post("/api/login", json={"name": "Alice", "password": "s3cret"})
    assert login.json()["is_admin"] is False


def test_register_validation(client):
    assert client.post("/api/members", json={**MEMBER, "password": "abc"}).status_code == 422
    assert client.post("/api/members", json={**MEMBER, "character_class": "ROGUE"}).status_code == 422
    assert client.post("/api/members", json={**MEMBER, "role": "Emperor"}).status_code == 422


def test_leader_login(client):
    client.post("/api/members", json={**MEMBER, "role": "Leader"})
    assert client.post("/api/login", json={"name": "Alice", "password": "s3cret"}).json()["is_leader"] is True


def test_self_update(client):
    client.post("/api/members", json=MEMBER)
    response = client.put("/api/members/self/Alice", json={"level": 72, "power": 2000})
    assert response.status_code == 200
    assert response.json()["level"] == 72
    assert response.json()["power"] == 2000
    assert response.json()["role"] == "Member"
    assert client.put("/api/members/self/Nobody", json={"level": 2}).status_code == 404


def test_privileged_member_update_and_delete(client):
    member_id = client.post("/api/members", json=MEMBER).json()["id"]

    assert client.put(f"/api/members/{member_id}", json={"dkp": 30}).status_code == 401
    response = client.put(f"/api/members/{member_id}", json={"dkp": 30, "role": "Vice-Leader"}, headers=LEADER_HEADERS)
    assert response.status_code == 200
    assert response.json()["dkp"] == 30
    assert client.get("/api/activities?limit=1").json()[0]["type"] == "dkp_change"

    assert client.delete(f"/api/members/{member_id}", headers=LEADER_HEADERS).status_code == 204
    assert client.get("/api/members").json() == []
    assert client.delete(f"/api/members/{member_id}", headers=LEADER_HEADERS).status_code == 404


# --- activities ---

def test_generic_activity_endpoint(client, clock):
    response = client.post("/api/activities", json={"type": "timer_set", "description": "manual note"})
    assert response.status_code == 201
    assert response.json()["boss_id"] is None

    clock.advance(seconds=1)
    client.post("/api/activities", json={"type": "timer_set", "description": "later"})
    entries = client.get("/api/activities", params={"limit": 1}).json()
    assert [e["description"] for e in entries] == ["later"]
    assert client.get("/api/activities", params={"limit": 0}).status_code == 422


# --- notifications ---

def test_notification_broadcast(client):
    author = client.post("/api/members", json={**MEMBER, "role": "Leader"}).json()["id"]
    assert client.get("/api/notifications/active").json() is None

    first = {"title": "War", "message": "19h at MAP 6", "created_by": author}
    assert client.post("/api/notifications", json=first).status_code == 401
    client.post("/api/notifications", json=first, headers=LEADER_HEADERS)
    second = client.post(
        "/api/notifications", json={**first, "title": "Raid"}, headers=LEADER_HEADERS
    ).json()

    active = client.get("/api/notifications/active").json()
    assert active["id"] == second["id"]
    assert active["title"] == "Raid"

    assert client.delete("/api/notifications", headers=LEADER_HEADERS).status_code == 204
    assert client.get("/api/notifications/active").json() is None


def test_notification_unknown_author(client):
    payload = {"title": "War", "message": "now", "created_by": "ghost"}
    assert client.post("/api/notifications", json=payload, headers=LEADER_HEADERS).status_code == 409


# --- dependencies ---

def test_memory_backend_opens_no_session(monkeypatch):
    import main

    session_factory = MagicMock()
    monkeypatch.setattr(main, "SessionLocal", session_factory)
    monkeypatch.setattr(main.settings, "storage_backend", "memory")

    dependency = main.get_storage()
    assert next(dependency) is main.memory_storage
    dependency.close()
    session_factory.assert_not_called()


def test_database_backend_closes_its_session(monkeypatch):
    import main

    session_factory = MagicMock()
    monkeypatch.setattr(main, "SessionLocal", session_factory)
    monkeypatch.setattr(main.settings, "storage_backend", "database")

    dependency = main.get_storage()
    storage = next(dependency)
    assert storage.db is session_factory.return_value
    dependency.close()
    session_factory.return_value.close.assert_called_once()
