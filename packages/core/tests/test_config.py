"""Tests for engine settings loading."""

from pathlib import Path

import pytest
import yaml
from converge.config import EngineSettings, load_settings
from pydantic import ValidationError


class TestEngineSettings:
    def test_defaults(self):
        s = EngineSettings()
        assert s.parallelism == 4
        assert s.max_attempts == 5
        assert s.backoff_seconds == 1.0
        assert s.backoff_max_seconds == 30.0
        assert s.state_file is None

    def test_rejects_zero_parallelism(self):
        with pytest.raises(ValidationError):
            EngineSettings(parallelism=0)


class TestLoadSettings:
    def test_no_file_no_env(self):
        assert load_settings(env={}) == EngineSettings()

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        assert load_settings(tmp_path / "nope.yaml", env={}).parallelism == 4

    def test_engine_section(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"version": 1, "engine": {"parallelism": 8, "max_attempts": 2}}))
        s = load_settings(path, env={})
        assert s.parallelism == 8
        assert s.max_attempts == 2

    def test_top_level_keys_and_unknown_ignored(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"parallelism": 2, "colour": "blue"}))
        assert load_settings(path, env={}).parallelism == 2

    def test_env_overrides_file(self, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"engine": {"parallelism": 8}}))
        s = load_settings(
            path,
            env={"CONVERGE_PARALLELISM": "2", "CONVERGE_BACKOFF_SECONDS": "0.5", "CONVERGE_STATE_FILE": "s.json"},
        )
        assert s.parallelism == 2
        assert s.backoff_seconds == 0.5
        assert s.state_file == Path("s.json")

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("CONVERGE_MAX_ATTEMPTS", "9")
        assert load_settings().max_attempts == 9

    def test_invalid_env_value(self):
        with pytest.raises(ValidationError):
            load_settings(env={"CONVERGE_PARALLELISM": "zero"})
