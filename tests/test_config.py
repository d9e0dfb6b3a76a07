"""Tests for root discovery and .groverc settings."""
from pathlib import Path

import pytest

from grove.config import GroveConfig, InvalidSettingError, LinksConfig, find_grove_root
from grove.config.paths import ROOT_ENV_VAR


class TestFindRoot:

    def test_env_override(self, isolate_grove_root):
        assert find_grove_root() == isolate_grove_root.resolve()

    def test_rc_file_walk_up(self, tmp_path, monkeypatch):
        monkeypatch.delenv(ROOT_ENV_VAR, raising=False)
        root = tmp_path / "root"
        nested = root / "repositories" / "_a" / "b"
        nested.mkdir(parents=True)
        (root / ".groverc").write_text("", encoding="utf-8")
        assert find_grove_root(nested) == root.resolve()

    def test_home_fallback(self, tmp_path, monkeypatch):
        monkeypatch.delenv(ROOT_ENV_VAR, raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path / "home"))
        lonely = tmp_path / "lonely"
        lonely.mkdir()
        assert find_grove_root(lonely) == tmp_path / "home" / "grove"


class TestGroveConfig:

    def test_defaults(self, tmp_path):
        config = GroveConfig.load(tmp_path / ".groverc")
        assert config.links.kind == "auto"
        assert config.links.manage_gitignore is True
        assert config.state.lock_timeout == 10.0
        assert config.exec.env_prefix == "GROVE_"

    def test_save_and_load(self, tmp_path):
        path = tmp_path / ".groverc"
        config = GroveConfig()
        config.log_level = "DEBUG"
        config.links.kind = "copy"
        config.state.lock_timeout = 2.5
        config.save(path)

        loaded = GroveConfig.load(path)
        assert loaded.log_level == "DEBUG"
        assert loaded.links.kind == "copy"
        assert loaded.state.lock_timeout == 2.5

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / ".groverc"
        path.write_text('[links]\nkind = "hardlink"\n', encoding="utf-8")
        assert GroveConfig.load(path).links.kind == "auto"

        path.write_text("not = [toml", encoding="utf-8")
        assert GroveConfig.load(path) == GroveConfig()

    def test_invalid_kind_rejected(self):
        with pytest.raises(InvalidSettingError):
            LinksConfig(kind="hardlink")

    def test_log_level_upper_cased(self):
        assert GroveConfig.from_dict({"grove": {"log_level": "info"}}).log_level == "INFO"
