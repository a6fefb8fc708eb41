"""Tests for track key normalisation, matching and file listing."""

import asyncio

import pytest

from errors import DashboardError
from utils import (
    BackgroundTaskSet, build_track_key, filename_key, list_audio_files,
    safe_archive_name, safe_name, slugify, track_is_downloaded,
)


class TestSlugify:

    @pytest.mark.parametrize("text, expected", [
        ("Radiohead - Karma Police", "radiohead-karma-police"),
        ("Beyoncé - Déjà Vu", "beyonce-deja-vu"),
        ("AC/DC - T.N.T.", "acdc-tnt"),
        ("  Massive   Attack  ", "massive-attack"),
        ("Sigur Rós - Hoppípolla", "sigur-ros-hoppipolla"),
        ("", ""),
    ])
    def test_normalises(self, text, expected):
        assert slugify(text) == expected

    @pytest.mark.parametrize("text", [
        "Radiohead - Karma Police",
        "Daft Punk, Pharrell Williams - Get Lucky (Radio Edit)",
        "Björk - Jóga",
    ])
    def test_stable_and_idempotent(self, text):
        key = slugify(text)
        assert slugify(text) == key
        assert slugify(key) == key

    def test_none_is_empty(self):
        assert slugify(None) == ""


class TestTrackMatching:

    def test_track_key(self):
        assert build_track_key("Radiohead", "Karma Police") == "radiohead-karma-police"

    def test_filename_key_strips_extension(self):
        assert filename_key("Radiohead - Karma Police.mp3") == "radiohead-karma-police"

    def test_suffixed_filename_matches(self):
        file_keys = [filename_key("radiohead-karma-police-320kbps.mp3")]
        assert track_is_downloaded("radiohead-karma-police", file_keys)

    def test_numeric_prefix_matches(self):
        file_keys = [filename_key("03 Radiohead - Karma Police.flac")]
        assert track_is_downloaded(build_track_key("Radiohead", "Karma Police"), file_keys)

    def test_unrelated_file_does_not_match(self):
        file_keys = [filename_key("Portishead - Roads.mp3")]
        assert not track_is_downloaded("radiohead-karma-police", file_keys)

    def test_containing_key_also_matches(self):
        # "portishead-roads" is inside "portishead-roads-live", so it counts
        file_keys = [filename_key("Portishead - Roads Live.mp3")]
        assert track_is_downloaded(build_track_key("Portishead", "Roads"), file_keys)

    def test_no_files(self):
        assert not track_is_downloaded("radiohead-karma-police", [])


class TestListAudioFiles:

    def test_missing_directory_is_empty(self, tmp_path):
        assert list_audio_files(tmp_path / "nope") == []

    def test_filters_extensions_and_subdirs(self, tmp_path):
        (tmp_path / "b.MP3").write_bytes(b"x")
        (tmp_path / "a.flac").write_bytes(b"x")
        (tmp_path / "cover.jpg").write_bytes(b"x")
        (tmp_path / "info.json").write_text("{}")
        (tmp_path / "nested.mp3").mkdir()

        assert list_audio_files(tmp_path) == ["a.flac", "b.MP3"]

    def test_custom_extensions(self, tmp_path):
        (tmp_path / "a.flac").write_bytes(b"x")
        (tmp_path / "b.mp3").write_bytes(b"x")
        assert list_audio_files(tmp_path, extensions=[".mp3"]) == ["b.mp3"]


class TestNames:

    def test_safe_archive_name(self):
        assert safe_archive_name("My Mix!") == "My_Mix_.zip"

    def test_safe_name_keeps_brackets(self):
        assert safe_name("Song [abc123].mp3") == "Song [abc123].mp3"
        assert safe_name('bad"name?.mp3') == "bad_name_.mp3"


class TestBackgroundTaskSet:

    @pytest.mark.asyncio
    async def test_failures_are_contained(self):
        tasks = BackgroundTaskSet()

        async def boom():
            raise DashboardError("nope")

        task = tasks.spawn(boom(), "boom")
        await tasks.wait_idle()

        assert task.result() is None
        assert len(tasks) == 0

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        tasks = BackgroundTaskSet()
        task = tasks.spawn(asyncio.sleep(3600), "sleeper")
        await asyncio.sleep(0)
        assert len(tasks) == 1

        await tasks.cancel_all()

        assert task.cancelled()
        assert len(tasks) == 0
