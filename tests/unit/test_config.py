from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from hotseat.config import (
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_MARKER,
    ConfigError,
    load_config,
    parse_config,
)


def _write_config(tmp_path: Path, content: str) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(textwrap.dedent(content), encoding="utf-8")
    return config_path


def test_load_config_success(tmp_path: Path) -> None:
    app_root = tmp_path / "site"
    (app_root / "bin").mkdir(parents=True)
    config_path = _write_config(
        tmp_path,
        f"""
        app_root: {app_root}
        app_package: acme.blog
        root_dir: {tmp_path}/state
        marker: reload.now
        debounce_seconds: 1.5
        settings:
          database: sqlite:///blog.db
        logging:
          level: debug
          debug_file: true
        """,
    )

    config = load_config(config_path)

    assert config.app_root == app_root
    assert config.app_package == "acme.blog"
    assert config.root_dir == tmp_path / "state"
    assert config.bin_dir == app_root / "bin"
    assert config.package_path == Path("acme/blog")
    assert config.controllers_dir == app_root / "bin" / "acme" / "blog" / "controllers"
    assert config.watch_dir == app_root / "tmp"
    assert config.marker_path == app_root / "tmp" / "reload.now"
    assert config.debounce_seconds == 1.5
    assert config.settings == {"database": "sqlite:///blog.db"}
    assert config.logging.level == "debug"
    assert config.logging.debug_file is True


def test_load_config_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        f"""
        app_root: {tmp_path}
        app_package: blog
        """,
    )

    monkeypatch.setenv("HOTSEAT_CONFIG", str(config_path))
    config = load_config()

    assert config.app_package == "blog"
    assert config.marker == DEFAULT_MARKER
    assert config.debounce_seconds == DEFAULT_DEBOUNCE_SECONDS
    assert config.settings == {}


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Config file not found"):
        load_config(tmp_path / "absent.yaml")


@pytest.mark.parametrize(
    "bad_content, expected_message",
    [
        ("- just\n- a list\n", "Configuration root must be a mapping"),
        ("app_package: blog\n", "app_root must be configured"),
        ("app_root: {missing}\napp_package: blog\n", "app_root is not a directory"),
        ("app_root: {root}\n", "app_package must be a dotted package name"),
        ("app_root: {root}\napp_package: blog-site\n", "is not a valid package name"),
        ("app_root: {root}\napp_package: blog.class\n", "is not a valid package name"),
        ("app_root: {root}\napp_package: blog\nmarker: tmp/restart.txt\n", "marker must be"),
        ("app_root: {root}\napp_package: blog\ndebounce_seconds: -1\n", "cannot be negative"),
        ("app_root: {root}\napp_package: blog\ndebounce_seconds: soon\n", "must be a number"),
        ("app_root: {root}\napp_package: blog\nsettings: [1, 2]\n", "settings must be a mapping"),
        ("app_root: {root}\napp_package: blog\nlogging: loud\n", "logging must be a mapping"),
        (
            "app_root: {root}\napp_package: blog\nlogging:\n  level: verbose\n",
            "Unknown log level: verbose",
        ),
        ("app_root: [unclosed\n", "Invalid YAML"),
    ],
)
def test_load_config_validation_errors(
    bad_content: str,
    expected_message: str,
    tmp_path: Path,
) -> None:
    content = bad_content.format(root=tmp_path, missing=tmp_path / "missing")
    config_path = _write_config(tmp_path, content)

    with pytest.raises(ConfigError) as excinfo:
        load_config(config_path)

    assert expected_message in str(excinfo.value)


def test_root_dir_has_no_alias(tmp_path: Path) -> None:
    config = parse_config(
        {"app_root": str(tmp_path), "app_package": "blog", "rootdir": str(tmp_path / "elsewhere")}
    )

    assert config.root_dir == Path("~/.local/lib/hotseat").expanduser()
