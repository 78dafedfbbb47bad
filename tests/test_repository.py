import json

from tasteblend.models import User
from tasteblend.repository import InMemoryUserRepository, load_users_file, save_users_file


def test_load_users_file_accepts_app_export(tmp_path):
    path = tmp_path / "users.json"
    path.write_text(json.dumps({
        "users": [
            {
                "id": "1",
                "username": "ana",
                "playlists": [{"id": "p", "name": "Liked", "movies": [{"id": 5, "genre_ids": [28]}]}],
            },
            {"id": "2", "username": "ben"},
        ],
        "friendships": [{"id": "f", "user1Id": "1", "user2Id": "2", "status": "pending"}],
    }))

    repo = load_users_file(path)

    assert [u.username for u in repo.list_users()] == ["ana", "ben"]
    assert repo.get_user(1).liked.movie_ids == {5}
    assert repo.list_friendships()[0].addressee_id == "2"


def test_load_users_file_accepts_bare_list(tmp_path):
    path = tmp_path / "users.json"
    path.write_text(json.dumps([{"id": "1"}, {"id": "2"}]))

    assert len(load_users_file(path).list_users()) == 2


def test_save_users_file_round_trips(tmp_path):
    repo = InMemoryUserRepository([User(id="1", username="ana")])
    path = save_users_file(repo, tmp_path / "out" / "users.json")

    assert load_users_file(path).get_user("1") == repo.get_user("1")


def test_save_user_overwrites_by_id():
    repo = InMemoryUserRepository([User(id="1", username="old")])
    repo.save_user(User(id="1", username="new"))

    assert [u.username for u in repo.list_users()] == ["new"]


def test_malformed_records_are_skipped_with_a_warning(tmp_path, caplog):
    path = tmp_path / "users.json"
    path.write_text(json.dumps({
        "users": [{"id": "1"}, {"username": "no id"}, "junk"],
        "friendships": [
            {"id": "f1", "user1Id": "1", "user2Id": "2"},
            {"id": "f2", "user1Id": "1"},
            {"id": "f3", "user1Id": "1", "user2Id": "2", "status": "blocked"},
        ],
    }))

    repo = load_users_file(path)

    assert [u.id for u in repo.list_users()] == ["1"]
    assert [f.id for f in repo.list_friendships()] == ["f1"]
    assert "Skipping malformed user record #1" in caplog.text
    assert "Skipping malformed friendship record #2" in caplog.text
    assert "unknown status 'blocked'" in caplog.text
