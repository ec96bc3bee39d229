"""Tests for SongAnalyzer."""

import json

import pytest

from karaoke_pitch.core.analysis import AnalysisStatus, SongAnalyzer
from karaoke_pitch.core.reference import ReferenceStore

from conftest import make_sine


@pytest.fixture
def analyzer(song_dirs):
    songs, refs = song_dirs
    analyzer = SongAnalyzer(songs, ReferenceStore(refs))
    yield analyzer
    analyzer.shutdown()


@pytest.mark.unit
class TestSongAnalyzer:
    """Test cases for SongAnalyzer."""

    def test_list_songs_filters_audio(self, analyzer, song_dirs, write_wav):
        songs, _ = song_dirs
        write_wav(songs / "b.wav", make_sine(220.0))
        (songs / "a.MP3").write_bytes(b"")
        (songs / "notes.txt").write_text("lyrics")

        assert analyzer.list_songs() == ["a.MP3", "b.wav"]

    def test_analyze_builds_and_saves(self, analyzer, song_dirs, write_wav):
        songs, refs = song_dirs
        write_wav(songs / "tone.wav", make_sine(220.0, n_samples=2048 * 4))

        outcome = analyzer.analyze("tone.wav")

        assert outcome.ok
        assert not outcome.reused
        assert outcome.ref_path == refs / "tone_ref.json"
        assert len(json.loads(outcome.ref_path.read_text())) == 4
        assert outcome.to_dict() == {
            "song": "tone",
            "status": "ok",
            "ref": str(refs / "tone_ref.json"),
        }

    def test_existing_reference_is_reused(self, analyzer, song_dirs, write_wav):
        songs, _ = song_dirs
        write_wav(songs / "tone.wav", make_sine(220.0, n_samples=2048 * 4))
        first = analyzer.analyze("tone.wav")
        mtime = first.ref_path.stat().st_mtime_ns

        second = analyzer.analyze("tone.wav")

        assert second.ok and second.reused
        assert second.ref_path.stat().st_mtime_ns == mtime

    def test_force_rebuilds(self, analyzer, song_dirs, write_wav):
        songs, _ = song_dirs
        write_wav(songs / "tone.wav", make_sine(220.0, n_samples=2048 * 4))
        analyzer.analyze("tone.wav")

        outcome = analyzer.analyze("tone.wav", force=True)

        assert outcome.ok and not outcome.reused

    def test_missing_song_reports_error(self, analyzer):
        outcome = analyzer.analyze("ghost.mp3")

        assert outcome.status is AnalysisStatus.ERROR
        assert outcome.error_kind == "InputNotFound"
        assert outcome.to_dict()["error"] == "InputNotFound"
        assert outcome.ref_path is None

    def test_undecodable_song_reports_error(self, analyzer, song_dirs):
        songs, refs = song_dirs
        (songs / "broken.mp3").write_bytes(b"garbage")

        outcome = analyzer.analyze("broken.mp3")

        assert not outcome.ok
        assert outcome.error_kind == "DecodeError"
        assert not (refs / "broken_ref.json").exists()

    def test_unwritable_reference_dir_reports_error(self, song_dirs, write_wav):
        songs, refs = song_dirs
        refs.write_text("not a directory")
        write_wav(songs / "tone.wav", make_sine(220.0, n_samples=2048 * 2))
        analyzer = SongAnalyzer(songs, ReferenceStore(refs))

        try:
            outcome = analyzer.submit("tone.wav").result(timeout=60)
        finally:
            analyzer.shutdown()

        assert outcome.status is AnalysisStatus.ERROR
        assert outcome.error_kind == "FileExistsError"
        assert outcome.to_dict()["error"] == "FileExistsError"

    def test_submit_runs_in_background(self, analyzer, song_dirs, write_wav):
        songs, _ = song_dirs
        write_wav(songs / "tone.wav", make_sine(220.0, n_samples=2048 * 2))

        outcome = analyzer.submit("tone.wav").result(timeout=60)

        assert outcome.ok
        assert "tone" in analyzer.store
