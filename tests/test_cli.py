"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from karaoke_pitch.cli.main import cli
from karaoke_pitch.utils.config import Config

from conftest import make_sine


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, song_dirs):
    songs, refs = song_dirs
    cfg = Config(song_delays={"song": 5.0})
    cfg.paths.songs_dir = songs
    cfg.paths.references_dir = refs
    path = tmp_path / "config.json"
    cfg.save(path)
    return path


@pytest.mark.unit
class TestCli:
    """Test cases for the click commands."""

    def test_analyze(self, runner, config_file, song_dirs, write_wav):
        songs, refs = song_dirs
        write_wav(songs / "tone.wav", make_sine(220.0, n_samples=2048 * 4))

        result = runner.invoke(cli, ["--config", str(config_file), "analyze", "tone.wav"])

        assert result.exit_code == 0, result.output
        assert "Generated reference" in result.output
        assert (refs / "tone_ref.json").exists()

        again = runner.invoke(cli, ["--config", str(config_file), "analyze", "tone.wav"])
        assert "Reused reference" in again.output

    def test_analyze_missing_song(self, runner, config_file):
        result = runner.invoke(cli, ["--config", str(config_file), "analyze", "ghost.wav"])

        assert result.exit_code == 1
        assert "InputNotFound" in result.output

    def test_analyze_all(self, runner, config_file, song_dirs, write_wav):
        songs, refs = song_dirs
        write_wav(songs / "a.wav", make_sine(220.0, n_samples=2048 * 2))
        write_wav(songs / "b.wav", make_sine(330.0, n_samples=2048 * 2))

        result = runner.invoke(cli, ["--config", str(config_file), "analyze-all"])

        assert result.exit_code == 0, result.output
        assert "2 ok, 0 failed" in result.output
        assert sorted(p.name for p in refs.iterdir()) == ["a_ref.json", "b_ref.json"]

    def test_analyze_all_empty_library(self, runner, config_file):
        result = runner.invoke(cli, ["--config", str(config_file), "analyze-all"])

        assert result.exit_code == 1

    def test_show(self, runner, config_file, store_with_track):
        result = runner.invoke(cli, ["--config", str(config_file), "show", "song"])

        assert result.exit_code == 0, result.output
        assert "Points: 10" in result.output
        assert "Manual offset: 5.00s" in result.output

    def test_show_missing_reference(self, runner, config_file):
        result = runner.invoke(cli, ["--config", str(config_file), "show", "ghost"])

        assert result.exit_code == 1
        assert "no reference for ghost" in result.output

    def test_show_corrupt_reference(self, runner, config_file, store_with_track):
        store_with_track.path_for("song").write_text("{not json")

        result = runner.invoke(cli, ["--config", str(config_file), "show", "song"])

        assert result.exit_code == 1
        assert "Corrupt reference file" in result.output

    def test_expected(self, runner, config_file, store_with_track):
        base = ["--config", str(config_file), "expected", "song"]

        early = runner.invoke(cli, base + ["--at", "3"])
        synced = runner.invoke(cli, base + ["--at", "6"])

        assert "not synchronized" in early.output
        assert "240.00Hz (B3)" in synced.output

    def test_clean(self, runner, config_file, store_with_track, song_dirs):
        _, refs = song_dirs

        result = runner.invoke(cli, ["--config", str(config_file), "clean", "song"])

        assert result.exit_code == 0, result.output
        cleaned = json.loads((refs / "song_clean.json").read_text())
        assert len(cleaned) == 10
        assert "song_clean" not in store_with_track.list_songs()

    def test_invalid_config_exits_with_usage_code(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"smoothing": {"alpha": 2.0}}))

        result = runner.invoke(cli, ["--config", str(path), "show", "song"])

        assert result.exit_code == 2
        assert "invalid configuration" in result.output

    def test_init_config(self, runner, tmp_path):
        output = tmp_path / "generated.json"

        result = runner.invoke(cli, ["init-config", "--output", str(output)])

        assert result.exit_code == 0, result.output
        assert Config.from_file(output).detector.frame_size == 2048
