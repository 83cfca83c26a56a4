"""
WorshipFlow Song Manager - HTTP API Tests

Exercises the JSON API and the print page through FastAPI's TestClient:
- Status codes and bodies for every songs/tags/ocr endpoint
- {"error": ...} shape for 400/404/409/500 responses
- "not configured" responses when the app starts without a store or API key
- Printable song sheet rendering
"""

from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from worshipflow.main import create_app
from worshipflow.services.songs import SongService

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _tag_ids(client) -> dict:
    """Map tag name -> id, seeding the defaults via GET /api/tags."""
    return {t["name"]: t["id"] for t in client.get("/api/tags").json()}


def _create(client, song_payload, **overrides) -> str:
    tags = _tag_ids(client)
    body = song_payload([tags["Joyful"], tags["English"]], **overrides)
    resp = client.post("/api/songs", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


# ===========================================================================
# Health
# ===========================================================================


class TestHealth:
    def test_ok(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "ok"
        assert data["store_configured"] is True
        assert data["transcription_configured"] is True
        assert "version" in data

    def test_degraded_without_store(self, unconfigured_client):
        data = unconfigured_client.get("/api/health").json()
        assert data["status"] == "degraded"
        assert data["store_configured"] is False
        assert data["transcription_configured"] is False


# ===========================================================================
# Songs
# ===========================================================================


class TestCreateSongEndpoint:
    def test_created(self, client, song_payload):
        song_id = _create(client, song_payload)
        assert isinstance(song_id, str)

    def test_missing_fields(self, client):
        resp = client.post("/api/songs", json={"title": "T", "artist": "A"})
        assert resp.status_code == 400
        assert resp.json() == {
            "error": "The following required fields are missing: "
            "Lyrics, Tags (at least one)."
        }

    def test_empty_body(self, client):
        resp = client.post("/api/songs", json={})
        assert resp.status_code == 400
        assert "Title" in resp.json()["error"]

    def test_duplicate(self, client, song_payload):
        _create(client, song_payload, title="Amazing Grace", artist="Traditional")
        tags = _tag_ids(client)
        resp = client.post(
            "/api/songs",
            json=song_payload(
                [tags["Solemn"]], title=" amazing grace ", artist="TRADITIONAL "
            ),
        )
        assert resp.status_code == 409
        assert resp.json()["error"].startswith("Duplicate song detected!")

    def test_wrong_type_is_400(self, client):
        resp = client.post("/api/songs", json={"title": "T", "tags": "not-a-list"})
        assert resp.status_code == 400
        assert "error" in resp.json()


class TestGetSongEndpoint:
    def test_round_trip(self, client, song_payload):
        song_id = _create(client, song_payload, title="  Spaced Title ")
        song = client.get(f"/api/songs/{song_id}").json()
        assert song["id"] == song_id
        assert song["title"] == "Spaced Title"
        assert song["artist"] == "Carl Boberg"
        assert song["chords"] == "C F C G"
        assert song["video_url"] == "https://youtu.be/example"
        assert [t["name"] for t in song["tags"]] == ["Joyful", "English"]
        assert song["tagIds"] == [t["id"] for t in song["tags"]]
        assert song["created_at"]
        assert song["updated_at"]

    def test_not_found(self, client):
        resp = client.get("/api/songs/ghost")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Song not found"}


class TestListSongsEndpoint:
    def test_sorted_and_filtered(self, client, song_payload):
        tags = _tag_ids(client)
        for title, tag in [("Zion", "Tagalog"), ("Abide", "English"), ("Mercy", "Tagalog")]:
            resp = client.post(
                "/api/songs", json=song_payload([tags[tag]], title=title)
            )
            assert resp.status_code == 201

        all_titles = [s["title"] for s in client.get("/api/songs").json()]
        assert all_titles == ["Abide", "Mercy", "Zion"]

        by_tag = client.get("/api/songs", params={"tagId": tags["Tagalog"]}).json()
        assert [s["title"] for s in by_tag] == ["Mercy", "Zion"]

        both = client.get(
            "/api/songs", params={"tagId": tags["Tagalog"], "search": "zi"}
        ).json()
        assert [s["title"] for s in both] == ["Zion"]

        by_tag_name = client.get("/api/songs", params={"search": "english"}).json()
        assert [s["title"] for s in by_tag_name] == ["Abide"]

    def test_empty(self, client):
        assert client.get("/api/songs").json() == []

    def test_store_failure_is_generic_500(self, client, monkeypatch):
        monkeypatch.setattr(
            SongService, "list_songs", AsyncMock(side_effect=RuntimeError("disk gone"))
        )
        resp = client.get("/api/songs")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to fetch songs"}


class TestUpdateSongEndpoint:
    def test_full_overwrite(self, client, song_payload):
        song_id = _create(client, song_payload)
        resp = client.put(f"/api/songs/{song_id}", json={"title": "Renamed"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        song = client.get(f"/api/songs/{song_id}").json()
        assert song["title"] == "Renamed"
        assert song["artist"] == ""
        assert song["lyrics"] == ""
        assert song["tagIds"] == []
        assert song["tags"] == []

    def test_unknown_id(self, client):
        resp = client.put("/api/songs/ghost", json={"title": "x"})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Song not found"}


class TestDeleteSongEndpoint:
    def test_delete(self, client, song_payload):
        song_id = _create(client, song_payload)
        assert client.delete(f"/api/songs/{song_id}").json() == {"success": True}
        assert client.get(f"/api/songs/{song_id}").status_code == 404

    def test_delete_unknown(self, client):
        resp = client.delete("/api/songs/ghost")
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    def test_bulk_delete(self, client, song_payload):
        a = _create(client, song_payload, title="A")
        b = _create(client, song_payload, title="B")
        _create(client, song_payload, title="C")
        resp = client.post("/api/songs/bulk-delete", json={"ids": [a, b, "ghost"]})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "deleted": 2}
        assert [s["title"] for s in client.get("/api/songs").json()] == ["C"]


# ===========================================================================
# Tags
# ===========================================================================


class TestTagsEndpoints:
    def test_list_seeds_defaults(self, client):
        names = [t["name"] for t in client.get("/api/tags").json()]
        assert names == ["English", "Joyful", "Solemn", "Tagalog"]

    def test_create(self, client):
        resp = client.post("/api/tags", json={"name": "Christmas", "color": "bg-green"})
        assert resp.status_code == 201
        data = resp.json()
        assert data["name"] == "Christmas"
        assert data["color"] == "bg-green"
        assert data["id"]

    def test_create_default_color_stored(self, client):
        client.post("/api/tags", json={"name": "Advent"})
        advent = [t for t in client.get("/api/tags").json() if t["name"] == "Advent"]
        assert advent[0]["color"] == "bg-gray-100 text-gray-800"

    def test_create_without_name_rejected(self, client):
        resp = client.post("/api/tags", json={"color": "bg-green"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Tag name is required"}
        names = [t["name"] for t in client.get("/api/tags").json()]
        assert names == ["English", "Joyful", "Solemn", "Tagalog"]

    def test_duplicates_repaired_on_list(self, client):
        client.post("/api/tags", json={"name": "Worship"})
        client.post("/api/tags", json={"name": "Worship"})
        names = [t["name"] for t in client.get("/api/tags").json()]
        assert names.count("Worship") == 1

    def test_delete_leaves_song_reference(self, client, song_payload):
        song_id = _create(client, song_payload)
        joyful = _tag_ids(client)["Joyful"]

        assert client.delete(f"/api/tags/{joyful}").json() == {"success": True}

        song = client.get(f"/api/songs/{song_id}").json()
        assert joyful in song["tagIds"]
        assert joyful not in [t["id"] for t in song["tags"]]

    def test_delete_unknown(self, client):
        assert client.delete("/api/tags/ghost").json() == {"success": True}


# ===========================================================================
# OCR
# ===========================================================================


class TestOcrEndpoint:
    def test_transcribes(self, client, gemini_calls):
        resp = client.post(
            "/api/ocr",
            json={"base64Data": "QUJD", "mimeType": "image/png", "type": "chords"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"text": "Verse 1:\nG  C  D\n\nChorus:\n(3x)"}
        assert len(gemini_calls) == 1

    def test_missing_fields(self, client, gemini_calls):
        resp = client.post("/api/ocr", json={"base64Data": "QUJD"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Missing required fields"}
        assert gemini_calls == []


# ===========================================================================
# Unconfigured app
# ===========================================================================


class TestUnconfigured:
    def test_songs_not_configured(self, unconfigured_client):
        resp = unconfigured_client.get("/api/songs")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Document store not configured"}

    def test_tags_not_configured(self, unconfigured_client):
        resp = unconfigured_client.get("/api/tags")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Document store not configured"}

    def test_ocr_not_configured(self, unconfigured_client):
        resp = unconfigured_client.post(
            "/api/ocr",
            json={"base64Data": "QUJD", "mimeType": "image/png", "type": "lyrics"},
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "Transcription service not configured"}


# ===========================================================================
# Print page
# ===========================================================================


class TestPrintPage:
    def test_renders_song(self, client, song_payload):
        song_id = _create(client, song_payload, chords="", lyrics="Line <one>")
        resp = client.get(f"/songs/{song_id}/print")
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        html = resp.text
        assert "<h1>How Great Thou Art</h1>" in html
        assert "<h2>Carl Boberg</h2>" in html
        assert "Line &lt;one&gt;" in html
        assert "No chords" in html

    def test_unknown_song(self, client):
        resp = client.get("/songs/ghost/print")
        assert resp.status_code == 404


# ===========================================================================
# Startup
# ===========================================================================


class TestStartup:
    def test_injected_store_skips_config_directories(
        self, store, transcriber, monkeypatch
    ):
        ensure = MagicMock()
        monkeypatch.setattr("worshipflow.main.ensure_directories", ensure)
        with TestClient(create_app(store=store, transcriber=transcriber)):
            pass
        ensure.assert_not_called()

    def test_no_store_skips_config_directories(self, transcriber, monkeypatch):
        ensure = MagicMock()
        monkeypatch.setattr("worshipflow.main.ensure_directories", ensure)
        with TestClient(create_app(store=None, transcriber=transcriber)):
            pass
        ensure.assert_not_called()

    def test_configured_store_creates_directories(
        self, tmp_path, transcriber, monkeypatch
    ):
        ensure = MagicMock()
        monkeypatch.setattr("worshipflow.main.ensure_directories", ensure)
        monkeypatch.setattr("worshipflow.main.DB_PATH", str(tmp_path / "db" / "w.db"))
        with TestClient(create_app(transcriber=transcriber)):
            pass
        ensure.assert_called_once_with()
