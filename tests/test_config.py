import pytest
from pathlib import Path
from drivedriver import config
from drivedriver.exceptions import ConfigError


def test_missing_file_gives_conservative_defaults(tmp_path):
    cfg = config.load_config(tmp_path / "config.toml")
    assert cfg.use_ai_analysis is False
    assert cfg.excluded_paths == frozenset()
    assert cfg.ollama_url == config.DEFAULT_OLLAMA_URL


def test_load_values(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        'use_ai_analysis = true\n'
        'ollama_model = "llama3"\n'
        'ollama_url = "http://box:11434"\n'
        f'excluded_paths = ["{(tmp_path / "skip").as_posix()}"]\n'
    )
    cfg = config.load_config(path)

    assert cfg.use_ai_analysis is True
    assert cfg.ollama_model == "llama3"
    assert cfg.ollama_url == "http://box:11434"
    assert cfg.is_path_excluded(tmp_path / "skip")


def test_malformed_file_raises(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("use_ai_analysis = = yes")
    with pytest.raises(ConfigError):
        config.load_config(path)


def test_wrong_types_raise(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('excluded_paths = "/tmp"\n')
    with pytest.raises(ConfigError):
        config.load_config(path)


def test_exclusion_covers_descendants(tmp_path):
    cfg = config.Config().with_exclusions(tmp_path / "cache")
    assert cfg.is_path_excluded(tmp_path / "cache")
    assert cfg.is_path_excluded(tmp_path / "cache" / "deep" / "file.bin")
    assert not cfg.is_path_excluded(tmp_path / "cache2")
    assert not cfg.is_path_excluded(tmp_path)


def test_config_is_immutable():
    cfg = config.Config()
    with pytest.raises(AttributeError):
        cfg.use_ai_analysis = True


def test_handle_publishes_new_snapshot():
    first = config.Config()
    handle = config.ConfigHandle(first)
    taken = handle.snapshot()

    second = config.Config(use_ai_analysis=True)
    assert handle.publish(second) is first

    assert handle.snapshot() is second
    # Earlier readers keep what they had
    assert taken.use_ai_analysis is False


def test_config_dir_env_override(monkeypatch, tmp_path):
    target = tmp_path / "home"
    monkeypatch.setenv(config.HOME_ENV_VAR, str(target))
    assert config.get_config_dir() == target
    assert target.is_dir()


def test_extension_table_is_closed():
    assert set(config.EXT_TO_CATEGORY.values()) <= set(config.CATEGORIES)
    assert config.EXT_TO_CATEGORY["pdf"] == "document"
    assert "xyz" not in config.EXT_TO_CATEGORY
