import os

import pytest

# tests always run against a throwaway SQLite file
os.environ.pop("DATABASE_URL", None)

import db_adapter  # noqa: E402
from app import app as flask_app  # noqa: E402


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(db_adapter, "SQLITE_PATH", str(tmp_path / "league.db"))
    flask_app.config["TESTING"] = True
    return flask_app.test_client()


@pytest.fixture
def make_player():
    def _make_player(player_id, name=None, assigned_team=None, preferred_club=None):
        return {
            "id": player_id,
            "name": name or f"Player {player_id}",
            "assigned_team": assigned_team,
            "preferred_club": preferred_club or f"Club {player_id}",
        }

    return _make_player
