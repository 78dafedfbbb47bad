import json
import logging
import sys

import pytest

from tasteblend import cli
from tasteblend.repository import load_users_file


@pytest.fixture
def users_file(tmp_path):
    path = tmp_path / "users.json"
    path.write_text(json.dumps({
        "users": [
            {"id": "a", "username": "ana", "playlists": [
                {"id": "a1", "name": "Liked", "movies": [{"id": 1, "title": "Shared", "genre_ids": [28]}]},
            ]},
            {"id": "b", "username": "ben", "playlists": [
                {"id": "b1", "name": "Liked", "movies": [{"id": 1, "title": "Shared", "genre_ids": [28]}]},
                {"id": "b2", "name": "Playlist1", "movies": [
                    {"id": 2, "title": "Heat", "genre_ids": [28], "vote_average": 8.3, "release_date": "1995-12-15"},
                ]},
            ]},
        ],
        "friendships": [],
    }))
    return path


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["tasteblend", *argv])
    cli.main()


def test_main_dispatches_to_subcommand(monkeypatch):
    called = {}

    def fake_matrix(args):
        called["command"] = args.command
        called["format"] = args.format

    monkeypatch.setattr(cli, "cmd_matrix", fake_matrix)
    _run(monkeypatch, "matrix", "--format", "json")

    assert called == {"command": "matrix", "format": "json"}


def test_cli_parses_recommend_args(monkeypatch):
    captured = {}

    def fake_recommend(args):
        captured["user_id"] = args.user_id
        captured["limit"] = args.limit
        captured["users_file"] = args.users_file

    monkeypatch.setattr(cli, "cmd_recommend", fake_recommend)
    _run(monkeypatch, "--users-file", "u.json", "recommend", "a", "--limit", "3")

    assert captured == {"user_id": "a", "limit": 3, "users_file": "u.json"}


def test_compat_json_output(monkeypatch, caplog, users_file):
    caplog.set_level(logging.INFO)
    _run(monkeypatch, "--users-file", str(users_file), "compat", "a", "b", "--format", "json")

    assert '"blend": 75' in caplog.text
    assert '"movie_overlap": 50' in caplog.text


def test_profile_and_recommend_text_output(monkeypatch, caplog, users_file):
    caplog.set_level(logging.INFO)
    _run(monkeypatch, "--users-file", str(users_file), "profile", "b")
    _run(monkeypatch, "--users-file", str(users_file), "recommend", "a")

    assert "Action" in caplog.text
    assert "100%" in caplog.text
    assert "1. Heat (1995) - rating 8.3" in caplog.text


def test_unknown_user_is_reported(monkeypatch, caplog, users_file):
    caplog.set_level(logging.INFO)
    _run(monkeypatch, "--users-file", str(users_file), "friend-recs", "a", "nobody")

    assert "No user with id 'nobody'" in caplog.text


def test_befriend_accept_and_mark_persist_to_users_file(monkeypatch, caplog, users_file):
    caplog.set_level(logging.INFO)
    _run(monkeypatch, "--users-file", str(users_file), "befriend", "a", "b")

    friendship = load_users_file(users_file).list_friendships()[0]
    _run(monkeypatch, "--users-file", str(users_file), "accept", "b", friendship.id)
    _run(monkeypatch, "--users-file", str(users_file), "mark", "a", '{"id": 3, "genre_ids": [35]}',
         "--collection", "Watched")

    repo = load_users_file(users_file)
    assert repo.list_friendships()[0].status.value == "accepted"
    assert repo.get_user("a").watched.movie_ids == {3}

    _run(monkeypatch, "--users-file", str(users_file), "friends", "a")
    assert "ben:" in caplog.text


def test_import_into_database(monkeypatch, fresh_db, users_file):
    import importlib

    importlib.reload(cli)
    _run(monkeypatch, "import", str(users_file))

    repo = fresh_db.SQLiteUserRepository()
    assert [u.id for u in repo.list_users()] == ["a", "b"]


def test_playlist_commands_persist_to_users_file(monkeypatch, caplog, users_file):
    caplog.set_level(logging.INFO)
    base = ["--users-file", str(users_file), "playlist"]

    _run(monkeypatch, *base, "create", "a", "Noir", "--description", "dark")
    _run(monkeypatch, *base, "add", "a", "Noir", '{"id": "7", "title": "Laura", "genre_ids": [80]}')
    _run(monkeypatch, *base, "add", "a", "Noir", '{"id": 8, "genre_ids": [80]}')
    _run(monkeypatch, *base, "remove", "a", "Noir", "8")

    noir = load_users_file(users_file).get_user("a").collection("Noir")
    assert noir.description == "dark"
    assert noir.movie_ids == {7}
    assert "Added Laura to 'Noir'" in caplog.text

    _run(monkeypatch, *base, "delete", "a", noir.id)
    assert load_users_file(users_file).get_user("a").collection("Noir") is None


def test_playlist_command_errors_are_logged(monkeypatch, caplog, users_file):
    caplog.set_level(logging.INFO)
    base = ["--users-file", str(users_file), "playlist"]

    _run(monkeypatch, *base, "add", "a", "missing", '{"id": 1}')
    _run(monkeypatch, *base, "add", "a", "Liked", "not json")
    _run(monkeypatch, *base, "delete", "a", "Liked")

    assert "has no playlist 'missing'" in caplog.text
    assert "Invalid movie JSON" in caplog.text
    assert "cannot be deleted" in caplog.text
    assert load_users_file(users_file).get_user("a").liked is not None


def test_reject_and_update_profile(monkeypatch, caplog, users_file):
    caplog.set_level(logging.INFO)
    _run(monkeypatch, "--users-file", str(users_file), "befriend", "a", "b")
    friendship = load_users_file(users_file).list_friendships()[0]

    _run(monkeypatch, "--users-file", str(users_file), "reject", "b", friendship.id)
    _run(monkeypatch, "--users-file", str(users_file), "update-profile", "a",
         "--bio", "Action nights", "--genres", "Action, Crime")

    repo = load_users_file(users_file)
    assert repo.list_friendships()[0].status.value == "rejected"
    assert repo.get_user("a").bio == "Action nights"
    assert repo.get_user("a").favorite_genres == ("Action", "Crime")

    _run(monkeypatch, "--users-file", str(users_file), "update-profile", "a", "--genres", "Sci-Fi")
    assert "Unknown genres: Sci-Fi" in caplog.text
