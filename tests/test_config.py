from __future__ import annotations

import json
from pathlib import Path

import pytest

from fidelity_converter.config import AppConfig, dump_config, load_config
from fidelity_converter.settings import Settings

CONFIG = """
[runtime]
temp_root = "/var/tmp/fc"
output_dir = "converted"
convert_timeout_s = 45
log_level = "debug"

[gate]
conversion_slots = 4
acquire_timeout_s = 5

[libreoffice]
executable_path = "/opt/libreoffice7.6/program/soffice"
allowed_base_dirs = "/srv/tools"
docx_timeout_s = 30

[render]
page_size = "letter"

[preprocessing]
enabled = false
content_width_dxa = 10080
"""

ENV_VARS = (
    "FC_TEMP_ROOT",
    "FC_CONFIG_PATH",
    "FC_LIBREOFFICE_PATH",
    "LIBREOFFICE_PATH",
    "FC_FORCE_BUNDLED_LIBREOFFICE",
    "FORCE_BUNDLED_LIBREOFFICE",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.toml")
    assert config == AppConfig()
    assert config.gate.conversion_slots == 2
    assert config.gate.file_access_slots == 5
    assert config.gate.acquire_timeout_s == 30.0
    assert config.libreoffice.docx_timeout_s == 120.0
    assert config.libreoffice.default_timeout_s == 90.0
    assert config.preprocessing.content_width_dxa == 9360


def test_sections_are_parsed(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(CONFIG, encoding="utf-8")

    config = load_config(path)

    assert config.runtime.temp_root == Path("/var/tmp/fc")
    assert config.runtime.convert_timeout_s == 45.0
    assert config.runtime.log_level == "DEBUG"
    assert config.gate.conversion_slots == 4
    assert config.gate.file_access_slots == 5
    assert config.gate.acquire_timeout_s == 5.0
    assert config.libreoffice.executable_path == Path("/opt/libreoffice7.6/program/soffice")
    assert config.libreoffice.allowed_base_dirs == (Path("/srv/tools"),)
    assert config.libreoffice.docx_timeout_s == 30.0
    assert config.render.page_size == "letter"
    assert config.preprocessing.enabled is False
    assert config.preprocessing.content_width_dxa == 10080


def test_dump_is_json(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(CONFIG, encoding="utf-8")
    payload = json.loads(dump_config(load_config(path)))
    assert payload["gate"]["conversion_slots"] == 4
    assert payload["libreoffice"]["allowed_base_dirs"] == ["/srv/tools"]
    assert json.loads(dump_config(AppConfig()))["libreoffice"]["executable_path"] is None


def test_environment_overrides(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("LIBREOFFICE_PATH", "/opt/lo/program/soffice")
    clean_env.setenv("FC_FORCE_BUNDLED_LIBREOFFICE", "true")
    clean_env.setenv("FC_TEMP_ROOT", str(tmp_path / "scratch"))

    config = Settings().apply(AppConfig())

    assert config.libreoffice.executable_path == Path("/opt/lo/program/soffice")
    assert config.libreoffice.force_bundled is True
    assert config.runtime.temp_root == tmp_path / "scratch"
    assert config.runtime.output_dir == Path("outputs")


def test_prefixed_variable_is_accepted(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("FC_LIBREOFFICE_PATH", "/usr/lib/libreoffice/program/soffice")
    assert Settings().libreoffice_path == Path("/usr/lib/libreoffice/program/soffice")


def test_no_overrides_leave_config_untouched(clean_env: pytest.MonkeyPatch) -> None:
    config = AppConfig()
    assert Settings().apply(config) == config
