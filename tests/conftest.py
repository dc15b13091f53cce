"""Shared test fixtures for Teamboard tests."""

import sys
from pathlib import Path
from urllib.parse import urlsplit

import pytest

# Ensure the repo root is importable (pkg.teamboard, teamboard_server)
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.teamboard.client import TeamboardClient
from pkg.teamboard.store import UserStore


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point config and DB at the test's temp dir; never read a real config."""
    monkeypatch.setenv("TEAMBOARD_CONFIG", str(tmp_path / "no-such-config.yaml"))
    monkeypatch.setenv("TEAMBOARD_DB", str(tmp_path / "teamboard.db"))
    monkeypatch.delenv("TEAMBOARD_URL", raising=False)
    monkeypatch.delenv("TEAMBOARD_TOKEN", raising=False)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "teamboard.db")


@pytest.fixture
def users(db_path):
    """Two registered principals: {name: (User, token)}."""
    store = UserStore(db_path)
    return {
        "alice": store.create("alice"),
        "bob": store.create("bob"),
    }


@pytest.fixture
def alice(users):
    return users["alice"][0]


@pytest.fixture
def bob(users):
    return users["bob"][0]


# ── Flask-backed requests session ──


class _FlaskResponse:
    """Just enough of requests.Response for TeamboardClient."""

    def __init__(self, resp):
        self.status_code = resp.status_code
        self.ok = resp.status_code < 400
        self.reason = resp.status
        self.text = resp.get_data(as_text=True)
        self._json = resp.get_json(silent=True)

    def json(self):
        if self._json is None:
            raise ValueError("response body is not JSON")
        return self._json


class FlaskSession:
    """Routes TeamboardClient requests into the Flask test client."""

    def __init__(self, app):
        self.test_client = app.test_client()
        self.headers = {}

    def request(self, method, url, timeout=None, params=None, json=None):
        resp = self.test_client.open(
            urlsplit(url).path,
            method=method,
            query_string=params,
            json=json,
            headers=dict(self.headers),
        )
        return _FlaskResponse(resp)


@pytest.fixture
def api_client(users):
    """Factory: TeamboardClient for a named user, wired to the in-process app."""
    from teamboard_server import app

    def make(name: str) -> TeamboardClient:
        token = users[name][1]
        return TeamboardClient("http://teamboard.test", token, session=FlaskSession(app))

    return make
