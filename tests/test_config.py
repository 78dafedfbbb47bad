def test_env_overrides_and_validation(monkeypatch, fresh_config):
    import importlib

    monkeypatch.setenv("TASTEBLEND_FRIEND_REC_LIMIT", "10")
    monkeypatch.setenv("TASTEBLEND_PERSONAL_REC_LIMIT", "0")  # should clamp to min
    monkeypatch.setenv("TASTEBLEND_GENRE_BONUS_MAX", "-2")  # min clamp

    cfg = importlib.reload(fresh_config)

    assert cfg.FRIEND_REC_LIMIT == 10
    assert cfg.PERSONAL_REC_LIMIT == 1
    assert cfg.GENRE_BONUS_MAX == 0.0


def test_db_path_respects_env(fresh_config, tmp_path):
    assert fresh_config.DB_PATH == tmp_path / "test.db"


def test_invalid_env_values_fall_back_to_defaults(monkeypatch, fresh_config):
    import importlib

    monkeypatch.setenv("TASTEBLEND_TOP_GENRES", "three")
    monkeypatch.setenv("TASTEBLEND_COMMON_STRONG_THRESHOLD", "ten")
    monkeypatch.setenv("TASTEBLEND_GENRE_BONUS_MAX", "oops")

    cfg = importlib.reload(fresh_config)

    assert cfg.TOP_GENRE_COUNT == 3
    assert cfg.COMMON_STRONG_THRESHOLD == 10
    assert cfg.GENRE_BONUS_MAX == 3.0


def test_defaults():
    from tasteblend import config

    assert config.SYSTEM_COLLECTIONS == ("Watched", "Liked")
    assert (config.WEIGHT_REGULAR, config.WEIGHT_SYSTEM, config.WEIGHT_BOTH_SYSTEM) == (1, 2, 3)
    assert config.BLEND_MOVIE_WEIGHT + config.BLEND_GENRE_WEIGHT == 1.0


def test_env_limits_reach_recommender_defaults(monkeypatch, fresh_engine_modules, make_user, make_movie):
    monkeypatch.setenv("TASTEBLEND_PERSONAL_REC_LIMIT", "2")
    monkeypatch.setenv("TASTEBLEND_TOP_GENRES", "1")
    recommender, profile = fresh_engine_modules()

    user = make_user("me", {"Mix": [make_movie(1, [28]), make_movie(2, [28]), make_movie(3, [35])]})
    other = make_user("other", {"Mix": [
        make_movie(10, [35], rating=9.0),
        make_movie(11, [28], rating=5.0),
        make_movie(12, [28], rating=6.0),
        make_movie(13, [28], rating=7.0),
    ]})

    assert profile.top_genres({"Action": 67, "Comedy": 33}) == ["Action"]
    assert [m.id for m in recommender.recommend_for_user(user, [other])] == [13, 12]


def test_env_friend_limit_reaches_recommender_default(monkeypatch, fresh_engine_modules, make_user, make_movie):
    monkeypatch.setenv("TASTEBLEND_FRIEND_REC_LIMIT", "1")
    recommender, _ = fresh_engine_modules()

    user = make_user("me", {"Mix": [make_movie(1, [28])]})
    friend = make_user("friend", {"Mix": [make_movie(i, [28], rating=float(i)) for i in range(2, 6)]})

    assert [m.id for m in recommender.recommend_from_friend(user, friend)] == [5]
