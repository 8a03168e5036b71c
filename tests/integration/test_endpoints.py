"""
End-to-end tests for the bundled providers served from a running group.
"""

import json

import pytest

from debughttp.core.group import ListenerGroup
from debughttp.handlers.demo import DemoProvider
from debughttp.handlers.status import StatusProvider


@pytest.fixture
def running_group():
    group = ListenerGroup()
    group.add_provider(DemoProvider(port=0))
    group.add_provider(StatusProvider(group, port=0))
    group.start()
    yield group
    group.stop()


def test_demo_index(running_group, client):
    response = client.get(running_group["demo"].port, "/")

    assert response.status == 200
    assert "Server is running." in response.text


def test_demo_json(running_group, client):
    response = client.get(running_group["demo"].port, "/json")

    assert response.headers["content-type"] == "application/json"
    assert json.loads(response.text)["status"] == "ok"


def test_demo_query(running_group, client):
    response = client.get(running_group["demo"].port, "/test?param=hello%20there")

    assert "<p>param = hello there</p>" in response.text


def test_demo_unknown_path(running_group, client):
    response = client.get(running_group["demo"].port, "/missing")

    assert response.status == 404
    assert response.headers["access-control-allow-origin"] == "*"


def test_status_api(running_group, client):
    response = client.get(running_group["status"].port, "/api/status")
    data = json.loads(response.text)

    assert data["running"] is True
    assert [item["name"] for item in data["listeners"]] == ["demo", "status"]
    assert all(item["running"] for item in data["listeners"])
    assert data["listeners"][0]["port"] == running_group["demo"].port


def test_health(running_group, client):
    response = client.get(running_group["status"].port, "/health")
    data = json.loads(response.text)

    assert response.status == 200
    assert data["status"] == "healthy"
    assert data["running"] == 2


def test_status_page_links(running_group, client):
    response = client.get(running_group["status"].port, "/")

    assert f'href="{running_group["demo"].url}"' in response.text
    assert response.text.count('class="up">running') == 2
