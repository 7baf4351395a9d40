"""HTTP surface tests using FastAPI's test client."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.accumulator import AccumulationLimits, SearchSessionRegistry
from app.main import Services, register_routes
from app.models import CatalogItem, Genre, Interest, ResultPage, WatchlistEntry
from app.services.catalog import BrowsePage, CatalogRow
from app.services.interests import InterestStoreError
from app.services.recommendations import PersonalizedFeed
from app.services.tmdb import FetchFailure
from app.services.watchlist import WatchlistStoreError
from factories import raw_movie


class StubCatalog:
    def __init__(self) -> None:
        self.browse_calls: list[dict[str, object]] = []
        self.genres_error: Exception | None = None

    async def browse(self, category, **kwargs) -> BrowsePage:
        self.browse_calls.append({"category": category, **kwargs})
        if kwargs["sort_by"] == "bogus":
            raise ValueError("Unsupported sort order: bogus")
        if kwargs["page"] == 13:
            raise FetchFailure("TMDB responded with 503", status_code=503)
        item = CatalogItem(id=1, category=category, title="Heat", poster_path="/h.jpg")
        return BrowsePage(category, kwargs["page"], 2, [item], (1, 2))

    async def genre_list(self) -> tuple[Genre, ...]:
        if self.genres_error:
            raise self.genres_error
        return (Genre(id=28, name="Action"),)

    async def home_rows(self) -> list[CatalogRow]:
        return [CatalogRow("now-playing", "Now Playing", "movie", failed=True)]


class StubRecommendations:
    async def for_user(self, user_id: str) -> PersonalizedFeed:
        return PersonalizedFeed(onboarding_complete=user_id == "known")


class StubInterests:
    def __init__(self) -> None:
        self.saved: list[tuple[str, list[Interest]]] = []
        self.fail = False

    async def save_interests(self, user_id: str, interests: list[Interest]) -> int:
        if self.fail:
            raise InterestStoreError("database locked")
        self.saved.append((user_id, list(interests)))
        return len(interests)


class StubWatchlist:
    def __init__(self) -> None:
        self.entries: list[WatchlistEntry] = []
        self.fail = False

    async def list_entries(self, user_id: str) -> list[WatchlistEntry]:
        if self.fail:
            raise WatchlistStoreError("database locked")
        return list(self.entries)

    async def add_entry(self, user_id: str, entry: WatchlistEntry) -> bool:
        if entry in self.entries:
            return False
        self.entries.append(entry)
        return True

    async def remove_entry(self, user_id: str, tmdb_id: int, category: str) -> bool:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.key != (tmdb_id, category)]
        return len(self.entries) < before


async def fake_search(query: str, page: int) -> ResultPage:
    return ResultPage(
        page=page,
        total_pages=2,
        results=[raw_movie(page * 10 + offset) for offset in range(3)],
    )


def build_client() -> tuple[TestClient, Services]:
    app = FastAPI()
    register_routes(app)
    services = Services(
        catalog=StubCatalog(),  # type: ignore[arg-type]
        recommendations=StubRecommendations(),  # type: ignore[arg-type]
        interests=StubInterests(),  # type: ignore[arg-type]
        watchlist=StubWatchlist(),  # type: ignore[arg-type]
        searches=SearchSessionRegistry(
            fake_search, limits=AccumulationLimits(initial_target=1, load_more_target=1)
        ),
    )
    app.state.services = services
    return TestClient(app), services


def test_healthcheck() -> None:
    client, _ = build_client()

    assert client.get("/healthz").json() == {"status": "ok"}


def test_search_and_load_more_share_a_session() -> None:
    client, services = build_client()

    first = client.get("/api/search", params={"query": "heat", "session": "tab-1"})
    assert first.status_code == 200
    body = first.json()
    assert body["query"] == "heat"
    assert body["status"] == "idle"
    assert body["hasMore"] is True
    assert [item["id"] for item in body["results"]] == [10, 11, 12]

    more = client.post("/api/search/tab-1/more").json()
    assert more["status"] == "exhausted"
    assert more["hasMore"] is False
    assert len(more["results"]) == 6

    assert client.post("/api/search/unknown/more").status_code == 404
    assert client.delete("/api/search/tab-1").json() == {"closed": True}
    assert "tab-1" not in services.searches


def test_browse_maps_errors_to_status_codes() -> None:
    client, services = build_client()

    ok = client.get("/api/browse/tv", params={"page": 2, "genres": "18,80,x"})
    assert ok.status_code == 200
    assert ok.json()["pagination"] == [1, 2]
    assert ok.json()["items"][0]["type"] == "series"
    assert services.catalog.browse_calls[0]["genres"] == (18, 80)

    assert client.get("/api/browse/podcasts").status_code == 400
    assert client.get("/api/browse/movie", params={"sortBy": "bogus"}).status_code == 400
    assert client.get("/api/browse/movie", params={"page": 13}).status_code == 502


def test_pagination_endpoint() -> None:
    client, _ = build_client()

    response = client.get(
        "/api/pagination", params={"page": 10, "totalPages": 20, "window": 3}
    )

    assert response.json() == {"pages": [1, "...", 9, 10, 11, "...", 20]}


def test_home_and_genres() -> None:
    client, services = build_client()

    rows = client.get("/api/home").json()["rows"]
    assert rows[0]["failed"] is True
    assert client.get("/api/genres").json() == {"genres": [{"id": 28, "name": "Action"}]}

    services.catalog.genres_error = FetchFailure("Unable to reach TMDB")
    assert client.get("/api/genres").status_code == 502


def test_recommendations_report_onboarding_state() -> None:
    client, _ = build_client()

    assert client.get("/api/users/new/recommendations").json()["onboardingComplete"] is False
    assert client.get("/api/users/known/recommendations").json()["onboardingComplete"] is True


def test_saving_interests() -> None:
    client, services = build_client()

    response = client.post(
        "/api/users/alice/interests",
        json={"interests": [{"type": "genre", "id": 28}, {"type": "tv", "id": 1399}]},
    )
    assert response.json() == {"added": 2}
    user_id, saved = services.interests.saved[0]
    assert user_id == "alice"
    assert saved[1].interest_type == "series"

    assert client.post("/api/users/alice/interests", json={"interests": []}).status_code == 400
    assert (
        client.post(
            "/api/users/alice/interests", json={"interests": [{"type": "actor", "id": 1}]}
        ).status_code
        == 400
    )
    assert client.post("/api/users/alice/interests", content=b"not json").status_code == 400

    services.interests.fail = True
    assert (
        client.post(
            "/api/users/alice/interests", json={"interests": [{"type": "genre", "id": 1}]}
        ).status_code
        == 503
    )


def test_watchlist_routes() -> None:
    client, services = build_client()
    entry = {"id": 603, "type": "movie", "title": "The Matrix", "posterPath": "/m.jpg"}

    assert client.post("/api/users/alice/watchlist", json=entry).json() == {"added": True}
    assert client.post("/api/users/alice/watchlist", json=entry).json() == {"added": False}
    items = client.get("/api/users/alice/watchlist").json()["items"]
    assert [(item["id"], item["type"]) for item in items] == [(603, "movie")]

    assert client.post("/api/users/alice/watchlist", json={"id": 1}).status_code == 400
    assert client.post("/api/users/alice/watchlist", content=b"[]").status_code == 400

    removed = client.delete("/api/users/alice/watchlist/movies/603").json()
    assert removed == {"removed": True}
    assert client.delete("/api/users/alice/watchlist/podcast/603").status_code == 400

    services.watchlist.fail = True
    assert client.get("/api/users/alice/watchlist").status_code == 503
