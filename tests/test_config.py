"""Tests for the compatibility table loader."""

from __future__ import annotations

import pytest

from amplify_health.config import CompatibilityTable, load_compatibility_table
from amplify_health.errors import ConfigError


def test_defaults_without_file(monkeypatch):
    monkeypatch.setattr("amplify_health.config.COMPAT_FILE", "")
    table = load_compatibility_table()
    assert table.recommended == "20"
    assert "18" in table.lts


def test_yaml_override_keeps_missing_keys(tmp_path):
    path = tmp_path / "compat.yml"
    path.write_text("lts: [20, 22, 24]\ncurrent: [25]\ndeprecated: [16, 18]\nexperimental: []\nrecommended: 22\n")
    table = load_compatibility_table(str(path))
    assert table.lts == ["20", "22", "24"]
    assert table.recommended == "22"
    assert table.default == "18"


def test_json_file_is_accepted(tmp_path):
    path = tmp_path / "compat.json"
    path.write_text('{"recommended": "22"}')
    assert load_compatibility_table(str(path)).recommended == "22"


def test_overlapping_sets_rejected():
    with pytest.raises(ValueError):
        CompatibilityTable(lts=["18", "20"], deprecated=["18"])


@pytest.mark.parametrize("content", ["lts: [18, 20\n", "- just\n- a list\n", "lts: [18]\ndeprecated: [18]\n"])
def test_bad_files_raise_config_error(tmp_path, content):
    path = tmp_path / "compat.yml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_compatibility_table(str(path))


def test_missing_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_compatibility_table(str(tmp_path / "nope.yml"))
