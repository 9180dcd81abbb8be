"""
Tests for the HTTP playback server
"""
import pytest
import sys
import os
from unittest.mock import patch
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import api

PLAYLIST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-TARGETDURATION:6
#EXT-X-MEDIA-SEQUENCE:0
#EXTINF:6.000000,
stream0.ts
#EXTINF:6.000000,
stream1.ts
"""


@pytest.fixture
def output_dir(tmp_path):
    (tmp_path / "stream.m3u8").write_text(PLAYLIST)
    (tmp_path / "stream0.ts").write_bytes(b"\x47\x40\x00\x10SEGMENT0")
    (tmp_path / "stream1.ts").write_bytes(b"\x47\x40\x00\x10SEGMENT1")
    return tmp_path


@pytest.fixture
def client(output_dir):
    with patch.object(api.settings, "OUTPUT_DIR", str(output_dir)), \
            patch.object(api.settings, "PLAYLIST_NAME", "stream.m3u8"), \
            patch.object(api.settings, "API_TOKEN", None):
        yield TestClient(api.app)


@pytest.fixture
def client_with_auth(output_dir):
    with patch.object(api.settings, "OUTPUT_DIR", str(output_dir)), \
            patch.object(api.settings, "PLAYLIST_NAME", "stream.m3u8"), \
            patch.object(api.settings, "API_TOKEN", "test_token_123"):
        yield TestClient(api.app)


class TestPlayback:

    def test_health(self, client, output_dir):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["playlist_available"] is True
        assert "copy" in data["profiles"]

    def test_playlist(self, client):
        response = client.get("/stream/stream.m3u8")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/vnd.apple.mpegurl")
        assert response.headers["cache-control"] == "no-cache"
        assert "stream1.ts" in response.text

    def test_segment(self, client):
        response = client.get("/stream/stream1.ts")
        assert response.status_code == 200
        assert response.headers["content-type"] == "video/mp2t"
        assert response.content == b"\x47\x40\x00\x10SEGMENT1"

    def test_missing_segment(self, client):
        assert client.get("/stream/stream9.ts").status_code == 404

    def test_segments_listing(self, client):
        response = client.get("/stream/segments")
        assert response.status_code == 200
        assert response.json()["segments"] == ["stream0.ts", "stream1.ts"]

    def test_segments_listing_without_playlist(self, client, output_dir):
        (output_dir / "stream.m3u8").unlink()
        assert client.get("/stream/segments").status_code == 404


class TestPathHandling:

    def test_resolve_stays_inside_output_dir(self, client, output_dir):
        assert api.resolve_output_file("stream0.ts") == os.path.join(str(output_dir), "stream0.ts")

    def test_parent_directory_rejected(self, client):
        with pytest.raises(api.HTTPException) as excinfo:
            api.resolve_output_file("..")
        assert excinfo.value.status_code == 400


class TestAuthentication:

    def test_missing_token(self, client_with_auth):
        response = client_with_auth.get("/health")
        assert response.status_code == 401
        assert "API token required" in response.json()["detail"]

    def test_invalid_token(self, client_with_auth):
        response = client_with_auth.get("/health", headers={"X-API-Token": "wrong_token"})
        assert response.status_code == 403

    def test_token_header(self, client_with_auth):
        response = client_with_auth.get("/health", headers={"X-API-Token": "test_token_123"})
        assert response.status_code == 200

    def test_token_query_for_players(self, client_with_auth):
        response = client_with_auth.get("/stream/stream0.ts?api_token=test_token_123")
        assert response.status_code == 200


def test_content_types():
    assert api.get_content_type("a.ts") == "video/mp2t"
    assert api.get_content_type("a.M3U8") == "application/vnd.apple.mpegurl"
    assert api.get_content_type("init.mp4") == "video/mp4"
    assert api.get_content_type("a.bin") == "application/octet-stream"
