"""
tests/test_tasks_api.py — End-to-end tests for the /v1/tasks endpoints
"""
from __future__ import annotations

import pytest

from conftest import AUTH


def _create(client, title: str) -> dict:
    response = client.post("/v1/tasks", json={"title": title}, headers=AUTH)
    assert response.status_code == 201, response.text
    return response.json()


def test_full_lifecycle(client):
    created = client.post("/v1/tasks", json={"title": "buy milk"}, headers=AUTH)
    assert created.status_code == 201
    assert created.json() == {"id": 1, "title": "buy milk", "done": False}
    assert created.headers["content-type"].startswith("application/json")

    fetched = client.get("/v1/tasks?id=1", headers=AUTH)
    assert fetched.status_code == 200
    assert fetched.json() == {"id": 1, "title": "buy milk", "done": False}

    patched = client.patch("/v1/tasks?id=1", json={"done": True}, headers=AUTH)
    assert patched.status_code == 200
    assert patched.json() == {"updated": True}
    assert client.get("/v1/tasks?id=1", headers=AUTH).json()["done"] is True

    deleted = client.delete("/v1/tasks?id=1", headers=AUTH)
    assert deleted.status_code == 200
    assert deleted.json() == {"updated": True}

    gone = client.get("/v1/tasks?id=1", headers=AUTH)
    assert gone.status_code == 404
    assert gone.json() == {"error": "task not found"}


# ──────────────────────────────────────────────────────────────────────────────
# POST
# ──────────────────────────────────────────────────────────────────────────────

def test_title_over_limit_rejected(client):
    response = client.post("/v1/tasks", json={"title": "a" * 201}, headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"error": "title exceeds maximum length of 200 characters"}


def test_title_at_limit_accepted(client):
    assert _create(client, "a" * 200)["title"] == "a" * 200


def test_title_is_trimmed(client):
    assert _create(client, "   water plants \n")["title"] == "water plants"


def test_trim_happens_before_length_check(client):
    assert _create(client, "  " + "b" * 200 + "  ")["title"] == "b" * 200


@pytest.mark.parametrize("body", [{"title": ""}, {"title": "   \t "}, {}])
def test_empty_title_rejected(client, body):
    response = client.post("/v1/tasks", json=body, headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"error": "invalid title"}


@pytest.mark.parametrize("raw", [b"not json", b"", b'{"title": 5}', b"[1, 2]"])
def test_malformed_body_rejected(client, raw):
    response = client.post(
        "/v1/tasks",
        content=raw,
        headers={**AUTH, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "invalid request body"}


def test_ids_not_reused_over_http(client):
    first = _create(client, "one")
    client.delete(f"/v1/tasks?id={first['id']}", headers=AUTH)
    assert _create(client, "two")["id"] == 2


# ──────────────────────────────────────────────────────────────────────────────
# GET
# ──────────────────────────────────────────────────────────────────────────────

def test_list_all_and_filter_by_done(client):
    for title in ("a", "b", "c"):
        _create(client, title)
    client.patch("/v1/tasks?id=2", json={"done": True}, headers=AUTH)

    everything = client.get("/v1/tasks", headers=AUTH).json()
    assert sorted(t["id"] for t in everything) == [1, 2, 3]

    done = client.get("/v1/tasks?done=true", headers=AUTH).json()
    assert [t["id"] for t in done] == [2]

    open_tasks = client.get("/v1/tasks?done=0", headers=AUTH).json()
    assert sorted(t["id"] for t in open_tasks) == [1, 3]


def test_empty_list(client):
    response = client.get("/v1/tasks", headers=AUTH)
    assert response.status_code == 200
    assert response.json() == []


def test_invalid_done_filter(client):
    response = client.get("/v1/tasks?done=maybe", headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"error": "invalid done parameter"}


def test_empty_done_filter_lists_all(client):
    _create(client, "a")
    assert len(client.get("/v1/tasks?done=", headers=AUTH).json()) == 1


@pytest.mark.parametrize("bad_id", ["abc", "0", "-3", "1.5", "1e3"])
def test_get_invalid_id(client, bad_id):
    response = client.get(f"/v1/tasks?id={bad_id}", headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"error": "invalid id"}


def test_id_takes_precedence_over_done(client):
    _create(client, "a")
    response = client.get("/v1/tasks?id=1&done=maybe", headers=AUTH)
    assert response.status_code == 200
    assert response.json()["id"] == 1


# ──────────────────────────────────────────────────────────────────────────────
# PATCH / DELETE
# ──────────────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("method", ["patch", "delete"])
def test_id_required(client, method):
    kwargs = {"json": {"done": True}} if method == "patch" else {}
    response = getattr(client, method)("/v1/tasks", headers=AUTH, **kwargs)
    assert response.status_code == 400
    assert response.json() == {"error": "id parameter is required"}


@pytest.mark.parametrize("method", ["patch", "delete"])
def test_invalid_id(client, method):
    kwargs = {"json": {"done": True}} if method == "patch" else {}
    response = getattr(client, method)("/v1/tasks?id=zero", headers=AUTH, **kwargs)
    assert response.status_code == 400
    assert response.json() == {"error": "invalid id"}


@pytest.mark.parametrize("method", ["patch", "delete"])
def test_unknown_id(client, method):
    kwargs = {"json": {"done": True}} if method == "patch" else {}
    response = getattr(client, method)("/v1/tasks?id=99", headers=AUTH, **kwargs)
    assert response.status_code == 404
    assert response.json() == {"error": "task not found"}


@pytest.mark.parametrize("body", [{"done": "yes"}, {"done": 1}, {}, {"title": "x"}])
def test_patch_rejects_bad_body(client, body):
    _create(client, "a")
    response = client.patch("/v1/tasks?id=1", json=body, headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"error": "invalid request body"}
    assert client.get("/v1/tasks?id=1", headers=AUTH).json()["done"] is False


# ──────────────────────────────────────────────────────────────────────────────
# Routing
# ──────────────────────────────────────────────────────────────────────────────

def test_unknown_route_uses_error_envelope(client):
    response = client.get("/tasks")
    assert response.status_code == 404
    assert response.json() == {"error": "not found"}


def test_unsupported_method_uses_error_envelope(client):
    response = client.put("/v1/tasks", json={}, headers=AUTH)
    assert response.status_code == 405
    assert response.json() == {"error": "method not allowed"}


def test_trailing_slash_is_not_matched(client):
    assert client.get("/v1/tasks/", headers=AUTH).status_code == 404


def test_null_title_rejected_as_invalid_title(client):
    response = client.post("/v1/tasks", json={"title": None}, headers=AUTH)
    assert response.status_code == 400
    assert response.json() == {"error": "invalid title"}


@pytest.mark.parametrize("method", ["get", "patch", "delete"])
def test_id_beyond_64_bits_is_invalid(client, method):
    kwargs = {"json": {"done": True}} if method == "patch" else {}
    response = getattr(client, method)("/v1/tasks?id=99999999999999999999999", headers=AUTH, **kwargs)
    assert response.status_code == 400
    assert response.json() == {"error": "invalid id"}
