"""
Route tests for catalog content: versions bump on writes, cached GETs.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest
from fastapi.testclient import TestClient

from service_catalog.app.main import CatalogService
from service_catalog.app.storage.object_store import ObjectStore


REFERENCE_CACHE_CONTROL = "public, max-age=600, stale-while-revalidate=300"
RECOMMENDATIONS_CACHE_CONTROL = "public, max-age=60, stale-while-revalidate=30"


def versions(client):
    return client.get("/api/content-version").json()


def create_genre(client, name="Rock", **extra):
    response = client.post("/api/genres", json={"name": name, **extra})
    assert response.status_code == 201
    return response.json()


def create_subgenre(client, genre_id, name="Grunge", **extra):
    response = client.post("/api/subgenres", json={"name": name, "genre": genre_id, **extra})
    assert response.status_code == 201
    return response.json()


def song_payload(**overrides):
    payload = {
        "title": "Night Drive",
        "artist": "Vara",
        "imageUrl": "https://cdn.vara.test/images/night.jpg",
        "audioUrl": "https://cdn.vara.test/audio/night.mp3",
        "duration": 210,
        "collectionType": "free",
    }
    payload.update(overrides)
    return payload


class TestGenreRoutes:
    """Genre and sub-genre routes."""

    def test_create_genre_bumps_version(self, client, clock):
        """A successful create advances the genre counter and the global version."""
        before = versions(client)
        clock.advance(1)

        genre = create_genre(client, "Rock", description="Loud")

        after = versions(client)
        assert genre["name"] == "Rock"
        assert genre["imageUrl"] == ""
        assert after["genres"] > before["genres"]
        assert after["v"] > before["v"]
        assert after["songs"] == before["songs"]

    def test_create_genre_requires_name(self, client):
        response = client.post("/api/genres", json={"name": "   "})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "code": "VALIDATION_ERROR",
            "error": "Genre name is required.",
            "details": {},
        }

    def test_duplicate_genre_conflicts_without_bump(self, client, clock):
        """A rejected write leaves the version untouched."""
        create_genre(client, "Rock")
        before = versions(client)
        clock.advance(1)

        response = client.post("/api/genres", json={"name": "Rock"})

        assert response.status_code == 409
        assert response.json()["error"] == "Genre with this name already exists."
        assert versions(client) == before

    @pytest.mark.parametrize("method,path,body,status,names", [
        ("post", "/api/genres", {"name": "Jazz"}, 201, ["Jazz", "Rock"]),
        ("put", "/api/genres/{id}", {"name": "Blues"}, 200, ["Blues"]),
        ("delete", "/api/genres/{id}", None, 200, []),
    ])
    def test_bump_failure_does_not_fail_write(self, client, memory_store, method, path, body, status, names):
        """The write stands when the version bump cannot be stored."""
        genre = create_genre(client, "Rock")
        before = versions(client)
        update_one = memory_store.update_one

        async def fail_version_writes(collection, *args, **kwargs):
            if collection == "content_versions":
                raise RuntimeError("down")
            return await update_one(collection, *args, **kwargs)

        kwargs = {"json": body} if body is not None else {}
        with patch.object(memory_store, "update_one", AsyncMock(side_effect=fail_version_writes)):
            response = getattr(client, method)(path.format(id=genre["_id"]), **kwargs)

        assert response.status_code == status
        assert sorted(g["name"] for g in client.get("/api/genres").json()) == names
        assert versions(client) == before

    def test_update_genre_replaces_image(self, client, object_store):
        """The replaced image is deleted after the write."""
        genre = create_genre(client, "Rock", imageUrl="https://cdn.vara.test/images/old.jpg")

        response = client.put(
            f"/api/genres/{genre['_id']}",
            json={"imageUrl": "https://cdn.vara.test/images/new.jpg"},
        )

        assert response.status_code == 200
        assert response.json()["imageUrl"] == "https://cdn.vara.test/images/new.jpg"
        assert response.json()["name"] == "Rock"
        object_store.delete_url.assert_awaited_once_with("https://cdn.vara.test/images/old.jpg")

    def test_update_genre_clear_image(self, client, object_store):
        genre = create_genre(client, "Rock", imageUrl="https://cdn.vara.test/images/old.jpg")

        response = client.put(f"/api/genres/{genre['_id']}", json={"clearImage": True})

        assert response.json()["imageUrl"] == ""
        object_store.delete_url.assert_awaited_once_with("https://cdn.vara.test/images/old.jpg")

    def test_update_genre_name_conflict(self, client):
        create_genre(client, "Rock")
        jazz = create_genre(client, "Jazz")

        response = client.put(f"/api/genres/{jazz['_id']}", json={"name": "Rock"})

        assert response.status_code == 409
        assert response.json()["error"] == "Another genre with this name already exists."

    def test_update_missing_genre(self, client):
        response = client.put("/api/genres/64b7f0000000000000000000", json={"name": "X"})

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
        assert response.json()["error"] == "Genre not found."

    def test_delete_genre_cascades(self, client, clock, object_store):
        """Deleting a genre removes its sub-genres and their images."""
        genre = create_genre(client, "Rock", imageUrl="https://cdn.vara.test/images/rock.jpg")
        create_subgenre(client, genre["_id"], "Grunge", imageUrl="https://cdn.vara.test/images/grunge.jpg")
        create_subgenre(client, genre["_id"], "Punk")
        before = versions(client)
        clock.advance(1)

        response = client.delete(f"/api/genres/{genre['_id']}")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["subGenresDeleted"] == 2
        assert client.get("/api/subgenres").json() == []
        after = versions(client)
        assert after["genres"] > before["genres"]
        assert after["subgenres"] > before["subgenres"]
        object_store.delete_url.assert_has_awaits([
            call("https://cdn.vara.test/images/rock.jpg"),
            call("https://cdn.vara.test/images/grunge.jpg"),
        ])

    def test_subgenre_requires_existing_parent(self, client):
        response = client.post("/api/subgenres", json={"name": "Grunge", "genre": "64b7f0000000000000000000"})

        assert response.status_code == 404
        assert response.json()["error"] == "Parent genre not found."

    def test_subgenre_listing_populates_parent(self, client):
        rock = create_genre(client, "Rock")
        jazz = create_genre(client, "Jazz")
        create_subgenre(client, rock["_id"], "Punk")
        create_subgenre(client, jazz["_id"], "Bebop")

        listed = client.get("/api/subgenres").json()
        by_genre = client.get(f"/api/subgenres/byGenre/{rock['_id']}").json()

        assert [(s["name"], s["genre"]["name"]) for s in listed] == [("Bebop", "Jazz"), ("Punk", "Rock")]
        assert [s["name"] for s in by_genre] == ["Punk"]

    def test_duplicate_subgenre_under_same_genre(self, client):
        rock = create_genre(client, "Rock")
        create_subgenre(client, rock["_id"], "Punk")

        response = client.post("/api/subgenres", json={"name": "Punk", "genre": rock["_id"]})

        assert response.status_code == 409


class TestReferenceRoutes:
    """Mood and instrument routes behind the response cache."""

    def test_list_is_cached(self, client):
        """The second GET inside the TTL replays the first response."""
        client.post("/api/moods", json={"name": "Calm"})

        first = client.get("/api/moods")
        second = client.get("/api/moods")

        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"
        assert second.headers["x-vara-cache"] == "HIT"
        assert second.content == first.content
        assert first.headers["cache-control"] == REFERENCE_CACHE_CONTROL
        assert second.headers["cache-control"] == REFERENCE_CACHE_CONTROL

    def test_cached_list_refreshes_after_ttl(self, client, clock):
        """Writes become visible once the cached copy expires."""
        client.get("/api/moods")
        client.post("/api/moods", json={"name": "Calm"})

        stale = client.get("/api/moods")
        clock.advance(301)
        fresh = client.get("/api/moods")

        assert stale.headers["x-cache"] == "HIT"
        assert stale.json() == []
        assert fresh.headers["x-cache"] == "MISS"
        assert [m["name"] for m in fresh.json()] == ["Calm"]

    def test_mutations_are_not_cached(self, client):
        response = client.post("/api/instruments", json={"name": "Cello"})

        assert response.status_code == 201
        assert "x-cache" not in response.headers
        assert "cache-control" not in response.headers

    def test_authorization_header_bypasses(self, client):
        client.get("/api/moods")

        response = client.get("/api/moods", headers={"Authorization": "Bearer not-a-token"})

        assert response.headers["x-cache"] == "BYPASS_AUTH"

    def test_nocache_switch(self, client):
        response = client.get("/api/instruments?__nocache=1")

        assert response.headers["x-cache"] == "BYPASS"
        assert response.headers["cache-control"] == "no-store"

    def test_names_are_case_insensitive_unique(self, client):
        client.post("/api/moods", json={"name": "Calm"})

        response = client.post("/api/moods", json={"name": "cALM"})

        assert response.status_code == 409
        assert response.json()["error"] == 'Mood "cALM" already exists.'

    def test_update_and_delete_bump(self, client, clock, object_store):
        item = client.post(
            "/api/instruments", json={"name": "Cello", "imageUrl": "https://cdn.vara.test/images/cello.jpg"}
        ).json()
        before = versions(client)

        clock.advance(1)
        updated = client.put(f"/api/instruments/{item['_id']}", json={"description": "Strings"})
        middle = versions(client)
        clock.advance(1)
        deleted = client.delete(f"/api/instruments/{item['_id']}")
        after = versions(client)

        assert updated.json()["description"] == "Strings"
        assert deleted.json() == {"success": True, "message": "Instrument and its image deleted successfully."}
        assert before["instruments"] < middle["instruments"] < after["instruments"]
        object_store.delete_url.assert_awaited_once_with("https://cdn.vara.test/images/cello.jpg")

    def test_missing_item(self, client):
        response = client.delete("/api/moods/64b7f0000000000000000000")

        assert response.status_code == 404
        assert response.json()["error"] == "Mood not found."


class TestBatchRoutes:
    """Batch routes."""

    def test_health(self, client):
        response = client.get("/api/batches/health")

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["router"] == "batches"

    def test_create_and_list(self, client, clock):
        before = versions(client)
        clock.advance(1)

        created = client.post("/api/batches", json={"name": "Spring 2026"})
        duplicate = client.post("/api/batches", json={"name": "spring 2026"})
        listed = client.get("/api/batches")

        assert created.status_code == 201
        assert duplicate.status_code == 409
        assert [b["name"] for b in listed.json()] == ["Spring 2026"]
        assert listed.headers["x-cache"] == "MISS"
        assert versions(client)["batches"] > before["batches"]


class TestSongRoutes:
    """Song and recommendation routes."""

    @pytest.fixture
    def taxonomy(self, client):
        genre = create_genre(client, "Electronic")
        subgenre = create_subgenre(client, genre["_id"], "Synthwave")
        return genre, subgenre

    def test_create_song(self, client, clock, taxonomy):
        genre, subgenre = taxonomy
        before = versions(client)
        clock.advance(1)

        response = client.post(
            "/api/songs",
            json=song_payload(genres=[genre["_id"]], subGenres=[subgenre["_id"]]),
        )

        assert response.status_code == 201
        song = response.json()
        assert song["collectionType"] == "free"
        assert song["isExclusive"] is False
        assert song["analytics"]["totalPlays"] == 0
        assert song["analytics"]["trendingScore"] == 0
        assert versions(client)["songs"] > before["songs"]

    def test_create_song_requires_media(self, client):
        response = client.post("/api/songs", json=song_payload(audioUrl=None))

        assert response.status_code == 400
        assert response.json()["error"] == "Both image and audio files are required."

    def test_create_song_requires_collection_type(self, client):
        payload = song_payload()
        del payload["collectionType"]

        response = client.post("/api/songs", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "Collection type is required."

    def test_invalid_collection_type_rejected(self, client):
        response = client.post("/api/songs", json=song_payload(collectionType="premium"))

        assert response.status_code == 422

    def test_create_song_with_unknown_genre(self, client):
        response = client.post("/api/songs", json=song_payload(genres=["64b7f0000000000000000000"]))

        assert response.status_code == 404
        assert response.json()["error"] == "One or more provided Genre or SubGenre IDs are invalid."

    def test_list_populates_names(self, client, taxonomy):
        genre, subgenre = taxonomy
        client.post("/api/songs", json=song_payload(genres=[genre["_id"]], subGenres=[subgenre["_id"]]))

        songs = client.get("/api/songs").json()

        assert songs[0]["genres"] == [{"_id": genre["_id"], "name": "Electronic"}]
        assert songs[0]["subGenres"] == [{"_id": subgenre["_id"], "name": "Synthwave"}]

    def test_update_song_deletes_replaced_media(self, client, object_store):
        song = client.post("/api/songs", json=song_payload()).json()

        response = client.put(
            f"/api/songs/{song['_id']}",
            json={"audioUrl": "https://cdn.vara.test/audio/night-v2.mp3", "isExclusive": True},
        )

        assert response.status_code == 200
        assert response.json()["isExclusive"] is True
        assert response.json()["imageUrl"] == song["imageUrl"]
        object_store.delete_url.assert_awaited_once_with("https://cdn.vara.test/audio/night.mp3")

    def test_delete_song_removes_both_objects(self, client, object_store):
        song = client.post("/api/songs", json=song_payload()).json()

        response = client.delete(f"/api/songs/{song['_id']}")

        assert response.status_code == 200
        assert client.get("/api/songs").json() == []
        object_store.delete_url.assert_has_awaits([
            call("https://cdn.vara.test/images/night.jpg"),
            call("https://cdn.vara.test/audio/night.mp3"),
        ])

    def test_weekly_recommendations(self, client, memory_store):
        """Songs are ranked by trending score and cached briefly."""
        scores = {"Low": (1, 50), "High": (9, 1), "Tie": (1, 80)}
        for title, (score, weekly) in scores.items():
            song = client.post("/api/songs", json=song_payload(title=title)).json()
            asyncio.run(memory_store.update_one("songs", {"_id": song["_id"]}, {
                "analytics.trendingScore": score,
                "analytics.weeklyPlays": weekly,
            }))

        first = client.get("/api/weekly-recommendations")
        second = client.get("/api/weekly-recommendations")

        assert [s["title"] for s in first.json()] == ["High", "Tie", "Low"]
        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"
        assert first.headers["cache-control"] == RECOMMENDATIONS_CACHE_CONTROL


class TestMediaDeletion:
    """Media removal through the real object store."""

    @pytest.fixture
    def s3_client(self):
        return MagicMock()

    @pytest.fixture
    def client(self, config, memory_store, clock, s3_client):
        objects = ObjectStore("vara-media", "https://cdn.vara.test", client=s3_client)
        service = CatalogService(config=config, document_store=memory_store, object_store=objects, clock=clock)
        return TestClient(service.app)

    def test_own_media_is_deleted(self, client, s3_client):
        genre = create_genre(client, "Rock", imageUrl="https://cdn.vara.test/images/rock.jpg")

        assert client.delete(f"/api/genres/{genre['_id']}").status_code == 200
        s3_client.delete_object.assert_called_once_with(Bucket="vara-media", Key="images/rock.jpg")

    def test_foreign_host_url_never_reaches_bucket(self, client, s3_client):
        """A client-supplied URL on another host cannot remove objects in the bucket."""
        genre = create_genre(client, "Rock", imageUrl="https://evil.example.com/songs/audio/other.mp3")

        response = client.delete(f"/api/genres/{genre['_id']}")

        assert response.status_code == 200
        s3_client.delete_object.assert_not_called()
