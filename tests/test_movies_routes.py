import pytest

MOVIES = [
    {"title": "Alien", "year": 1979, "genre": "Science Fiction", "director": "Ridley Scott",
     "rating": 8.5, "watched": True},
    {"title": "Blade Runner", "year": 1982, "genre": "Science Fiction", "director": "Ridley Scott",
     "rating": 9.0, "watched": True, "notes": "Final cut"},
    {"title": "Casablanca", "year": 1942, "genre": "Drama", "director": "Michael Curtiz",
     "rating": 7.0},
    {"title": "Dune", "year": 2021, "genre": "Science Fiction", "director": "Denis Villeneuve"},
]


def _add(client, headers, **fields):
    response = client.post("/movies", json=fields, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def library(client, user_headers):
    return [_add(client, user_headers, **movie) for movie in MOVIES]


@pytest.fixture()
def bob_headers(register_user, login):
    register_user("bob@example.com")
    return login("bob@example.com")


def test_create_movie_belongs_to_caller(client, user_headers):
    me = client.get("/auth/me", headers=user_headers).json()["user"]
    movie = _add(client, user_headers, title="Heat", year=1995)
    assert movie["user_id"] == me["id"]
    assert movie["watched"] is False
    assert movie["rating"] is None


@pytest.mark.parametrize("payload", [
    {"title": ""},
    {"title": "Too good", "rating": 10.5},
    {"title": "Too bad", "rating": -1},
    {"title": "Too early", "year": 1800},
    {"year": 2000},
])
def test_invalid_movie_payloads_are_rejected(client, user_headers, payload):
    assert client.post("/movies", json=payload, headers=user_headers).status_code == 422


def test_movies_require_authentication(client):
    assert client.get("/movies").status_code == 401
    assert client.post("/movies", json={"title": "Heat"}).status_code == 401


def test_owner_can_read_update_and_delete(client, user_headers, library):
    movie_id = library[0]["id"]
    assert client.get(f"/movies/{movie_id}", headers=user_headers).json()["title"] == "Alien"

    updated = client.patch(f"/movies/{movie_id}", json={"rating": 9.5, "notes": "Rewatched"}, headers=user_headers)
    assert updated.status_code == 200
    assert updated.json()["rating"] == 9.5
    assert updated.json()["notes"] == "Rewatched"
    assert updated.json()["title"] == "Alien"

    assert client.delete(f"/movies/{movie_id}", headers=user_headers).status_code == 204
    assert client.get(f"/movies/{movie_id}", headers=user_headers).status_code == 404


def test_patch_cannot_null_required_fields(client, user_headers, library):
    movie_id = library[0]["id"]
    assert client.patch(f"/movies/{movie_id}", json={"title": None}, headers=user_headers).status_code == 422
    assert client.patch(f"/movies/{movie_id}", json={"watched": None}, headers=user_headers).status_code == 422


def test_other_user_is_forbidden(client, library, bob_headers):
    movie_id = library[0]["id"]
    assert client.get(f"/movies/{movie_id}", headers=bob_headers).status_code == 403
    assert client.patch(f"/movies/{movie_id}", json={"rating": 1}, headers=bob_headers).status_code == 403
    assert client.delete(f"/movies/{movie_id}", headers=bob_headers).status_code == 403


def test_admin_can_read_any_movie(client, library, admin_headers):
    movie_id = library[1]["id"]
    response = client.get(f"/movies/{movie_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Blade Runner"


def test_missing_movie_is_not_found(client, user_headers, admin_headers):
    assert client.get("/movies/9999", headers=user_headers).status_code == 404
    assert client.get("/movies/9999", headers=admin_headers).status_code == 404


def test_list_only_returns_own_movies(client, library, bob_headers):
    _add(client, bob_headers, title="Bob's pick")
    response = client.get("/movies", headers=bob_headers)
    body = response.json()
    assert [m["title"] for m in body["data"]] == ["Bob's pick"]
    assert body["pagination"]["total_count"] == 1


def test_list_filters(client, user_headers, library):
    def titles(**params):
        response = client.get("/movies", params=params, headers=user_headers)
        assert response.status_code == 200
        return sorted(m["title"] for m in response.json()["data"])

    assert titles(genre="science") == ["Alien", "Blade Runner", "Dune"]
    assert titles(director="scott") == ["Alien", "Blade Runner"]
    assert titles(watched="true") == ["Alien", "Blade Runner"]
    assert titles(watched="false") == ["Casablanca", "Dune"]
    assert titles(year=1942) == ["Casablanca"]
    assert titles(min_rating=8, max_rating=8.9) == ["Alien"]
    assert titles(search="RUN") == ["Blade Runner"]


def test_list_sorting_and_pagination(client, user_headers, library):
    params = {"sort_by": "year", "sort_order": "asc", "limit": 3}
    first = client.get("/movies", params={**params, "page": 1}, headers=user_headers).json()
    assert [m["title"] for m in first["data"]] == ["Casablanca", "Alien", "Blade Runner"]
    assert first["pagination"] == {
        "page": 1,
        "limit": 3,
        "total_count": 4,
        "total_pages": 2,
        "has_next_page": True,
        "has_previous_page": False,
    }
    assert first["filters"]["sort_by"] == "year"

    second = client.get("/movies", params={**params, "page": 2}, headers=user_headers).json()
    assert [m["title"] for m in second["data"]] == ["Dune"]
    assert second["pagination"]["has_next_page"] is False
    assert second["pagination"]["has_previous_page"] is True


def test_list_rejects_unknown_sort_field(client, user_headers):
    response = client.get("/movies", params={"sort_by": "password"}, headers=user_headers)
    assert response.status_code == 422


def test_stats(client, user_headers, library):
    stats = client.get("/movies/stats", headers=user_headers).json()
    assert stats["total_movies"] == 4
    assert stats["watched_movies"] == 2
    assert stats["unwatched_movies"] == 2
    assert stats["avg_rating"] == pytest.approx((8.5 + 9.0 + 7.0) / 3)


def test_stats_for_empty_library(client, user_headers):
    stats = client.get("/movies/stats", headers=user_headers).json()
    assert stats == {"total_movies": 0, "watched_movies": 0, "unwatched_movies": 0, "avg_rating": 0.0}


def test_distinct_genres_and_directors(client, user_headers, library):
    assert client.get("/movies/genres", headers=user_headers).json() == ["Drama", "Science Fiction"]
    assert client.get("/movies/directors", headers=user_headers).json() == [
        "Denis Villeneuve", "Michael Curtiz", "Ridley Scott",
    ]


def test_search_matches_several_columns(client, user_headers, library):
    def titles(q):
        return sorted(m["title"] for m in client.get("/movies/search", params={"q": q}, headers=user_headers).json())

    assert titles("villeneuve") == ["Dune"]
    assert titles("final") == ["Blade Runner"]
    assert titles("drama") == ["Casablanca"]
    assert titles("   ") == []


def test_admin_listing_includes_owner(client, user_headers, library, admin_headers):
    assert client.get("/movies/admin/all", headers=user_headers).status_code == 403

    movies = client.get("/movies/admin/all", headers=admin_headers).json()
    assert len(movies) == 4
    assert {m["user"]["email"] for m in movies} == {"alice@example.com"}


def test_force_delete_is_admin_only(client, user_headers, library, admin_headers):
    movie_id = library[2]["id"]
    assert client.delete(f"/movies/admin/{movie_id}/force", headers=user_headers).status_code == 403
    assert client.delete(f"/movies/admin/{movie_id}/force", headers=admin_headers).status_code == 204
    assert client.delete(f"/movies/admin/{movie_id}/force", headers=admin_headers).status_code == 404
    assert client.get(f"/movies/{movie_id}", headers=user_headers).status_code == 404


def test_wildcards_are_matched_literally(client, user_headers):
    _add(client, user_headers, title="100% Wolf", genre="Animation", director="Alexs_Stadermann")
    _add(client, user_headers, title="1000 Years", genre="Drama", director="Alexs Stadermann")

    def titles(path, **params):
        response = client.get(path, params=params, headers=user_headers)
        assert response.status_code == 200
        body = response.json()
        movies = body["data"] if path == "/movies" else body
        return sorted(m["title"] for m in movies)

    assert titles("/movies", search="100%") == ["100% Wolf"]
    assert titles("/movies", search="_") == []
    assert titles("/movies", director="s_s") == ["100% Wolf"]
    assert titles("/movies", genre="%") == []
    assert titles("/movies/search", q="100%") == ["100% Wolf"]
    assert titles("/movies/search", q="_") == ["100% Wolf"]


def test_null_watched_at_keeps_the_viewing_date(client, user_headers):
    movie = _add(client, user_headers, title="Heat", watched=True, watched_at="2024-01-15T20:30:00Z")
    assert movie["watched_at"] is not None

    response = client.patch(f"/movies/{movie['id']}", json={"watched_at": None, "rating": 8}, headers=user_headers)
    assert response.status_code == 200
    assert response.json()["watched_at"] is not None
    assert response.json()["rating"] == 8
