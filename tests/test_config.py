import json
from pathlib import Path

import pytest

import lecturehub.config as config_module
from lecturehub.config import AppConfig, load_config


def _mapping(**overrides):
    mapping = {
        "storage_root": "storage",
        "database_file": "storage/lecturehub.db",
        "exports_root": "exports",
    }
    mapping.update(overrides)
    return mapping


def test_defaults_resolve_relative_to_base_path(tmp_path: Path) -> None:
    config = AppConfig.from_mapping(_mapping(), base_path=tmp_path)

    assert config.storage_root == (tmp_path / "storage").resolve()
    assert config.database_file == (tmp_path / "storage" / "lecturehub.db").resolve()
    assert config.exports_root == (tmp_path / "exports").resolve()
    assert config.backend == "sqlite"
    assert config.university_name == "Mountains of Moon University"
    assert config.university_code == "MMU"
    assert config.settings_file == config.storage_root / "settings.json"


def test_exports_root_falls_back_when_preferred_is_unusable(tmp_path: Path) -> None:
    (tmp_path / "storage").mkdir()
    (tmp_path / "exports").write_text("not a directory", encoding="utf-8")

    config = AppConfig.from_mapping(_mapping(), base_path=tmp_path)

    expected_fallback = (tmp_path / "storage" / "_exports").resolve()
    assert config.exports_root == expected_fallback
    assert expected_fallback.is_dir()


def test_storage_root_falls_back_when_preferred_is_unusable(
    tmp_path: Path, monkeypatch
) -> None:
    home_dir = tmp_path / "home"
    monkeypatch.setattr(config_module.Path, "home", lambda: home_dir)
    (tmp_path / "storage").write_text("not a directory", encoding="utf-8")

    config = AppConfig.from_mapping(_mapping(), base_path=tmp_path)

    expected_storage = (home_dir / ".lecturehub" / "storage").resolve()
    assert config.storage_root == expected_storage
    assert config.database_file == (expected_storage / "lecturehub.db").resolve()
    assert expected_storage.exists()


def test_firestore_and_university_settings(tmp_path: Path) -> None:
    config = AppConfig.from_mapping(
        _mapping(
            backend="Firestore",
            firestore={"project_id": "lecturehub-demo", "credentials_file": "keys/service.json"},
            university={"name": "Kyambogo University", "short_code": "kyu"},
        ),
        base_path=tmp_path,
    )

    assert config.backend == "firestore"
    assert config.firestore_project == "lecturehub-demo"
    assert config.firestore_credentials == (tmp_path / "keys" / "service.json").resolve()
    assert config.university_name == "Kyambogo University"
    assert config.university_code == "KYU"


def test_unknown_backend_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unsupported storage backend"):
        AppConfig.from_mapping(_mapping(backend="mongodb"), base_path=tmp_path)


def test_load_config_reads_json_file(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.json"
    data_dir = tmp_path / "data"
    config_file.write_text(
        json.dumps(
            {
                "storage_root": str(data_dir),
                "database_file": str(data_dir / "hub.db"),
                "exports_root": str(tmp_path / "out"),
            }
        ),
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.database_file.name == "hub.db"
    assert config.storage_root == data_dir.resolve()
