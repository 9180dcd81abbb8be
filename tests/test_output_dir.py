"""
Tests for resetting the local sink directory and reading its playlist
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from output_dir import reset_output_dir, read_playlist_segments


def test_reset_empty_directory(tmp_path):
    """An already-empty directory is not an error"""
    assert reset_output_dir(str(tmp_path)) == 0
    assert os.listdir(tmp_path) == []


def test_reset_creates_missing_directory(tmp_path):
    target = tmp_path / "stream"
    assert reset_output_dir(str(target)) == 0
    assert target.is_dir()


def test_reset_removes_stale_segments(tmp_path):
    (tmp_path / "stream.m3u8").write_text("#EXTM3U\n")
    (tmp_path / "stream0.ts").write_bytes(b"\x47" * 188)
    (tmp_path / "stream1.ts").write_bytes(b"\x47" * 188)
    nested = tmp_path / "old"
    nested.mkdir()
    (nested / "seg.ts").write_bytes(b"\x47")

    assert reset_output_dir(str(tmp_path)) == 4
    assert os.listdir(tmp_path) == []
    assert tmp_path.is_dir()


def test_reset_twice(tmp_path):
    (tmp_path / "stream0.ts").write_bytes(b"data")
    reset_output_dir(str(tmp_path))
    assert reset_output_dir(str(tmp_path)) == 0


def test_read_playlist_segments_in_order(tmp_path):
    playlist = tmp_path / "stream.m3u8"
    playlist.write_text(
        "#EXTM3U\n"
        "#EXT-X-VERSION:3\n"
        "#EXT-X-TARGETDURATION:6\n"
        "#EXT-X-MEDIA-SEQUENCE:3\n"
        "#EXTINF:6.000000,\n"
        "stream3.ts\n"
        "#EXTINF:6.000000,\n"
        "stream4.ts\n"
        "#EXTINF:6.000000,\n"
        "stream5.ts\n"
    )
    assert read_playlist_segments(str(playlist)) == ["stream3.ts", "stream4.ts", "stream5.ts"]
