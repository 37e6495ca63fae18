from pathlib import Path

import pytest

from pynbbuild import config
from pynbbuild.config import Settings, load_settings


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PYNBBUILD_TOOLCHAIN", raising=False)
    settings = load_settings()
    assert settings == Settings()
    assert settings.build_timeout == 30.0
    assert settings.run_timeout == 30.0


def test_yaml_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PYNBBUILD_TOOLCHAIN", raising=False)
    (tmp_path / "pynbbuild.yml").write_text(
        "toolchain: python\n"
        "build_timeout: 5\n"
        "build_command: [make, all]\n"
        "cache_dir: ~/somewhere\n"
    )
    settings = load_settings()
    assert settings.toolchain == "python"
    assert settings.build_timeout == 5.0
    assert settings.build_command == ["make", "all"]
    assert settings.cache_dir == Path.home() / "somewhere"


def test_unknown_key(tmp_path):
    path = tmp_path / "cfg.yml"
    path.write_text("tool_chain: fpm\n")
    with pytest.raises(ValueError, match="tool_chain"):
        load_settings(path)


def test_string_command_rejected(tmp_path):
    path = tmp_path / "cfg.yml"
    path.write_text("run_command: fpm run\n")
    with pytest.raises(ValueError, match="list of arguments"):
        load_settings(path)


def test_explicit_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.yml")


def test_env_toolchain(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PYNBBUILD_TOOLCHAIN", "python")
    assert load_settings().toolchain == "python"


def test_cache_dir_resolution(tmp_path, monkeypatch):
    monkeypatch.setenv("PYNBBUILD_CACHE_DIR", str(tmp_path / "env"))
    settings = Settings()
    assert settings.resolve_cache_dir() == tmp_path / "env"
    assert settings.resolve_cache_dir(tmp_path / "arg") == tmp_path / "arg"
    pinned = settings.with_overrides(cache_dir=tmp_path / "cfg")
    assert pinned.resolve_cache_dir() == tmp_path / "cfg"


def test_xdg_cache(tmp_path, monkeypatch):
    monkeypatch.delenv("PYNBBUILD_CACHE_DIR", raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    if config.os.name != "nt":
        assert config.default_cache_dir() == tmp_path / "pynbbuild"


def test_with_overrides_ignores_none():
    settings = Settings(toolchain="python")
    assert settings.with_overrides(toolchain=None).toolchain == "python"
    assert settings.with_overrides(run_timeout=1.0).run_timeout == 1.0


def test_lock_must_outlive_build():
    with pytest.raises(ValueError, match="lock_stale_after"):
        Settings(build_timeout=900, lock_stale_after=600)
    with pytest.raises(ValueError):
        Settings().with_overrides(build_timeout=600)
    # expiry disabled entirely is fine
    assert Settings(build_timeout=900, lock_stale_after=0).build_timeout == 900


def test_lock_must_outlive_build_in_file(tmp_path):
    path = tmp_path / "cfg.yml"
    path.write_text("build_timeout: 120\nlock_stale_after: 60\n")
    with pytest.raises(ValueError, match="must exceed"):
        load_settings(path)
