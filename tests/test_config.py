from __future__ import annotations

import pytest
import yaml
from loguru import logger

from seesharp.config import DEFAULT_SETTINGS_PATH, Config, load_config
from seesharp.core.errors import GeometryInvalid
from seesharp.log import remove_logging, setup_logging


@pytest.fixture
def captured_logs():
    messages = []
    handler_id = logger.add(messages.append, level="DEBUG", format="{level} {message}")
    yield messages
    logger.remove(handler_id)


def test_packaged_settings_match_defaults():
    assert DEFAULT_SETTINGS_PATH.exists()
    assert load_config() == Config()


def test_yaml_overrides_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump({
        "max_workers": 4,
        "low_confidence_alpha": 0.8,
        "enhancer": "torch",
        "model_path": "models/zero_dce.pt",
    }))

    config = load_config(path)
    assert config.max_workers == 4
    assert config.low_confidence_alpha == 0.8
    assert config.enhancer == "torch"
    assert config.model_path == "models/zero_dce.pt"
    assert config.tile_size == 256


def test_unknown_keys_are_ignored(tmp_path, captured_logs):
    path = tmp_path / "settings.yaml"
    path.write_text("tile_size: 128\nsharpen: true\n")

    config = load_config(str(path))
    assert config.tile_size == 128
    assert not hasattr(config, "sharpen")
    assert any("sharpen" in m for m in captured_logs)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("")
    assert load_config(path) == Config()


def test_missing_file_gives_defaults(tmp_path, captured_logs):
    assert load_config(tmp_path / "absent.yaml") == Config()
    assert any(m.startswith("WARNING") for m in captured_logs)


def test_tile_size_must_be_positive(tmp_path):
    with pytest.raises(GeometryInvalid):
        Config(tile_size=0)

    path = tmp_path / "settings.yaml"
    path.write_text("tile_size: -4\n")
    with pytest.raises(GeometryInvalid):
        load_config(path)


def test_max_workers_floor():
    assert Config(max_workers=0).max_workers == 1


def test_setup_logging_writes_file(tmp_path, isolated_logging):
    log_file = tmp_path / "logs" / "seesharp.log"
    handler_ids = setup_logging("WARNING", str(log_file))
    assert len(handler_ids) == 2
    try:
        logger.debug("tile debug line")
        logger.warning("budget exceeded")
    finally:
        remove_logging(handler_ids)

    text = log_file.read_text()
    assert "tile debug line" in text
    assert "budget exceeded" in text
    assert "MainThread" in text


def test_console_only_logging(isolated_logging):
    handler_ids = setup_logging("DEBUG")
    assert len(handler_ids) == 1
    remove_logging(handler_ids)
    # Removing twice is harmless
    remove_logging(handler_ids)


def test_settings_gate_depth_sensing(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("use_lidar: true\nlog_level: ERROR\n")
    config = load_config(path)
    assert config.use_lidar is True
    assert config.log_level == "ERROR"
