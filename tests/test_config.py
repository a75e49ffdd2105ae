from pathlib import Path

import pytest

from histeval.config import ConfigFormatError, WorkerSettings, load_mapping, settings_from_env


def test_worker_settings_defaults() -> None:
    settings = WorkerSettings()

    assert settings.batch_size == 100
    assert settings.concurrency_limit == 50
    assert settings.max_error_log_lines == 20


def test_settings_from_env_with_overrides() -> None:
    environ = {
        "HISTEVAL_BATCH_SIZE": "25",
        "HISTEVAL_CONCURRENCY_LIMIT": "5",
        "HISTEVAL_LOG_LEVEL": " ",
        "UNRELATED": "1",
    }

    settings = settings_from_env(environ, concurrency_limit=8, log_level=None)

    assert settings.batch_size == 25
    assert settings.concurrency_limit == 8
    assert settings.log_level == "INFO"


def test_settings_from_env_rejects_invalid_values() -> None:
    with pytest.raises(ValueError, match="Invalid worker settings"):
        settings_from_env({"HISTEVAL_BATCH_SIZE": "0"})


def test_load_mapping_reads_yaml_and_json(tmp_path: Path) -> None:
    yaml_path = tmp_path / "job.yaml"
    yaml_path.write_text("project_id: p1\nconfig:\n  evaluators: []\n", encoding="utf-8")
    json_path = tmp_path / "job.json"
    json_path.write_text('{"project_id": "p2"}', encoding="utf-8")

    assert load_mapping(yaml_path) == {"project_id": "p1", "config": {"evaluators": []}}
    assert load_mapping(json_path) == {"project_id": "p2"}


def test_load_mapping_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_mapping(tmp_path / "missing.yaml")

    toml_path = tmp_path / "job.toml"
    toml_path.write_text("a = 1", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported config format"):
        load_mapping(toml_path)

    list_path = tmp_path / "list.yaml"
    list_path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigFormatError, match="mapping at top level"):
        load_mapping(list_path)


def test_log_level_is_normalized_and_validated() -> None:
    assert WorkerSettings(log_level="debug").log_level == "DEBUG"

    with pytest.raises(ValueError, match="Invalid worker settings"):
        settings_from_env({"HISTEVAL_LOG_LEVEL": "LOUD"})
