import pytest

from tasteblend.models import User
from tasteblend.playlists import (
    add_to_playlist,
    create_playlist,
    delete_playlist,
    find_playlist,
    remove_from_playlist,
    update_system_collection,
)
from tasteblend.profile import build_profile


def test_system_collection_is_created_on_first_use(make_user, make_movie):
    user = make_user("a")
    movie = make_movie(1, [28], rating=7.0)

    updated = update_system_collection(user, movie, "Liked")

    assert user.collections == ()
    liked = updated.liked
    assert liked is not None and liked.is_system
    assert liked.description == "Your liked movies"
    assert [m.id for m in liked.movies] == [1]
    assert liked.movies[0].added_at is not None


def test_adding_twice_keeps_one_copy_and_remove_works(make_user, make_movie):
    movie = make_movie(1, [28])
    user = update_system_collection(make_user("a"), movie, "Watched")
    user = update_system_collection(user, movie, "Watched")

    assert len(user.watched.movies) == 1

    user = update_system_collection(user, movie, "Watched", add=False)
    assert user.watched.movies == ()


def test_marking_watched_and_liked_changes_the_profile(make_user, make_movie):
    action = make_movie(1, [28])
    user = make_user("a", {"Mix": [make_movie(2, [35])]})

    user = update_system_collection(user, action, "Watched")
    assert build_profile(user) == {"Action": 67, "Comedy": 33}

    user = update_system_collection(user, action, "Liked")
    assert build_profile(user) == {"Action": 86, "Comedy": 14}


def test_update_system_collection_rejects_other_names(make_user, make_movie):
    with pytest.raises(ValueError):
        update_system_collection(make_user("a"), make_movie(1), "Favourites")


def test_create_and_fill_playlist(make_user, make_movie):
    user, playlist = create_playlist(make_user("a"), "  Road trip ", description="for the car")

    assert playlist.name == "Road trip"
    assert not playlist.is_system

    user = add_to_playlist(user, playlist.id, make_movie(7))
    user = add_to_playlist(user, playlist.id, make_movie(8))
    assert [m.id for m in user.collection("Road trip").movies] == [7, 8]

    user = remove_from_playlist(user, playlist.id, 7)
    assert [m.id for m in user.collection("Road trip").movies] == [8]


def test_playlist_names_and_ids_are_validated(make_user, make_movie):
    with pytest.raises(ValueError):
        create_playlist(make_user("a"), "Watched")
    with pytest.raises(ValueError):
        create_playlist(make_user("a"), "   ")
    with pytest.raises(ValueError):
        add_to_playlist(make_user("a"), "missing", make_movie(1))


def test_delete_playlist_and_lookup_by_name_or_id(make_user, make_movie):
    user, playlist = create_playlist(make_user("a", {"Watched": [make_movie(1, [28])]}), "Noir")

    assert find_playlist(user, playlist.id) == playlist
    assert find_playlist(user, "Noir") == playlist
    assert find_playlist(user, "missing") is None

    user = delete_playlist(user, playlist.id)
    assert [c.name for c in user.collections] == ["Watched"]

    with pytest.raises(ValueError):
        delete_playlist(user, playlist.id)


def test_system_collections_cannot_be_deleted(make_movie):
    user = update_system_collection(User(id="a"), make_movie(1, [28]), "Liked")

    with pytest.raises(ValueError, match="system collection"):
        delete_playlist(user, user.liked.id)
