"""Tests for the background server endpoints."""
import re
from unittest.mock import Mock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from tabroom.rooms import parse_rooms, serialize_rooms
from tabroom.server.main import app
from tabroom.server.routers.rpc import generate_room_code


@pytest.fixture
def client(server_state):
    # No context manager: the lifespan would write a PID file
    return TestClient(app)


def test_generate_room_code():
    """Test generated codes are five uppercase alphanumerics."""
    for _ in range(50):
        assert re.fullmatch(r"[A-Z0-9]{5}", generate_room_code())


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "running"
    assert response.json()["tabs"] == 0


class TestRPC:
    """Tests for /rpc endpoints."""

    def test_create_room(self, client):
        response = client.post("/rpc/createRoom")

        assert response.status_code == 200
        assert re.fullmatch(r"[A-Z0-9]{5}", response.json()["code"])

    def test_get_tab_id_requires_key(self, client):
        response = client.get("/rpc/getTabId")

        assert response.status_code == 400

    def test_get_tab_id_is_stable(self, client):
        first = client.get("/rpc/getTabId", headers={"X-Tab-Key": "tab-a"}).json()
        again = client.get("/rpc/getTabId", headers={"X-Tab-Key": "tab-a"}).json()
        other = client.get("/rpc/getTabId", headers={"X-Tab-Key": "tab-b"}).json()

        assert first["id"] == again["id"]
        assert other["id"] != first["id"]
        assert first["key"] == "tab-a"


class TestTab:
    """Tests for /tab endpoints."""

    def test_register_keeps_id(self, client):
        tab_id = client.get("/rpc/getTabId", headers={"X-Tab-Key": "tab-a"}).json()["id"]

        response = client.post("/tab/", json={"key": "tab-a", "agent_url": "http://127.0.0.1:9000/"})

        assert response.status_code == 200
        assert response.json() == {"id": tab_id, "key": "tab-a", "agent_url": "http://127.0.0.1:9000/"}
        assert len(client.get("/tab/").json()) == 1

    def test_message_unknown_tab(self, client):
        response = client.post("/tab/99/message", json={"message": "detectVideo"})

        assert response.status_code == 404

    def test_message_without_agent(self, client):
        tab_id = client.post("/tab/", json={"key": "tab-a"}).json()["id"]

        response = client.post(f"/tab/{tab_id}/message", json={"message": "detectVideo"})

        assert response.status_code == 502
        assert response.json()["detail"] == "No page agent in tab"

    @patch("tabroom.server.routers.tab.httpx.AsyncClient")
    def test_message_relayed_to_agent(self, mock_client_class, client):
        agent_response = Mock()
        agent_response.json.return_value = {"status": "error", "message": "No video found"}
        agent_response.raise_for_status = Mock()

        calls = []

        async def post(url, json):
            calls.append((url, json))
            return agent_response

        mock_client_class.return_value.__aenter__.return_value.post = post
        mock_client_class.return_value.__aexit__.return_value = False

        tab_id = client.post("/tab/", json={"key": "tab-a", "agent_url": "http://127.0.0.1:9000/"}).json()["id"]
        response = client.post(f"/tab/{tab_id}/message", json={"message": "detectVideo"})

        assert response.status_code == 200
        assert response.json() == {"status": "error", "message": "No video found"}
        assert calls == [("http://127.0.0.1:9000/", {"message": "detectVideo"})]

    @patch("tabroom.server.routers.tab.httpx.AsyncClient")
    def test_message_agent_unreachable(self, mock_client_class, client):
        async def post(url, json):
            raise httpx.ConnectError("Connection refused")

        mock_client_class.return_value.__aenter__.return_value.post = post
        mock_client_class.return_value.__aexit__.return_value = False

        tab_id = client.post("/tab/", json={"key": "tab-a", "agent_url": "http://127.0.0.1:9000/"}).json()["id"]
        response = client.post(f"/tab/{tab_id}/message", json={"message": "detectVideo"})

        assert response.status_code == 502
        assert "Page agent unreachable" in response.json()["detail"]


class TestStorage:
    """Tests for /storage endpoints."""

    def test_get_missing(self, client):
        response = client.get("/storage/rooms")

        assert response.json() == {"key": "rooms", "value": None}

    def test_put_and_get(self, client, server_state):
        raw = serialize_rooms({7: "QX7K2"})

        response = client.put("/storage/rooms", json={"value": raw})

        assert response.status_code == 200
        assert client.get("/storage/rooms").json()["value"] == raw
        assert parse_rooms(server_state.get("rooms")) == {7: "QX7K2"}

    def test_compare_and_swap_conflict(self, client, server_state):
        server_state.set("rooms", serialize_rooms({3: "OTHER"}))

        response = client.put("/storage/rooms", json={
            "value": serialize_rooms({7: "QX7K2"}),
            "compare": True,
            "expected": None,
        })

        assert response.status_code == 409
        assert parse_rooms(server_state.get("rooms")) == {3: "OTHER"}

    def test_compare_and_swap_match(self, client, server_state):
        current = serialize_rooms({3: "OTHER"})
        server_state.set("rooms", current)

        response = client.put("/storage/rooms", json={
            "value": serialize_rooms({3: "OTHER", 7: "QX7K2"}),
            "compare": True,
            "expected": current,
        })

        assert response.status_code == 200
        assert parse_rooms(server_state.get("rooms")) == {3: "OTHER", 7: "QX7K2"}

    def test_put_null_removes(self, client, server_state):
        server_state.set("rooms", "{}")

        client.put("/storage/rooms", json={"value": None})

        assert server_state.get("rooms") is None
