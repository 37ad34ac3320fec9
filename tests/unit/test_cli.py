from __future__ import annotations

import shutil
from pathlib import Path

from typer.testing import CliRunner

from hotseat.cli import app
from tests.conftest import write_app, write_controller

runner = CliRunner()


def _write_config(tmp_path: Path, app_root: Path, package: str = "blog") -> Path:
    config = tmp_path / "config.yaml"
    config.write_text(
        "\n".join(
            [
                f"app_root: {app_root}",
                f"app_package: {package}",
                f"root_dir: {tmp_path / 'state'}",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return config


def test_check_lists_registered_handlers(tmp_path, app_root):
    package_dir = write_app(app_root)
    write_controller(package_dir / "controllers", "Home$1", body="class Helper:\n    pass\n")
    config_path = _write_config(tmp_path, app_root)

    result = runner.invoke(app, ["-c", str(config_path), "check"])

    assert result.exit_code == 0, result.output
    assert "Package: blog" in result.stdout
    assert "Handlers (2):" in result.stdout
    assert "  - Home: Home" in result.stdout
    assert "  - Users: Users" in result.stdout
    assert "Home$1" not in result.stdout


def test_check_fails_without_controllers(tmp_path, app_root):
    package_dir = write_app(app_root)
    shutil.rmtree(package_dir / "controllers")
    config_path = _write_config(tmp_path, app_root)

    result = runner.invoke(app, ["-c", str(config_path), "check"])

    assert result.exit_code == 1
    assert "discover" in result.output


def test_status_reports_marker_and_controllers(tmp_path, app_root):
    write_app(app_root)
    config_path = _write_config(tmp_path, app_root)

    result = runner.invoke(app, ["-c", str(config_path), "status"])

    assert result.exit_code == 0, result.output
    assert f"App root: {app_root}" in result.stdout
    assert "(absent)" in result.stdout
    assert "Controllers (2):" in result.stdout
    assert "  - Home" in result.stdout


def test_status_reports_missing_controllers(tmp_path, app_root):
    (app_root / "bin").mkdir()
    config_path = _write_config(tmp_path, app_root)

    result = runner.invoke(app, ["-c", str(config_path), "status"])

    assert result.exit_code == 0, result.output
    assert "Controllers: missing" in result.stdout


def test_restart_touches_marker(tmp_path, app_root):
    write_app(app_root)
    config_path = _write_config(tmp_path, app_root)

    result = runner.invoke(app, ["-c", str(config_path), "restart"])

    assert result.exit_code == 0, result.output
    assert (app_root / "tmp" / "restart.txt").is_file()

    status = runner.invoke(app, ["-c", str(config_path), "status"])
    assert "touched" in status.stdout


def test_invalid_config_exits_with_code_two(tmp_path, app_root):
    config_path = _write_config(tmp_path, app_root, package="not-a-package")

    result = runner.invoke(app, ["-c", str(config_path), "check"])

    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_unknown_log_level_exits_with_code_two(tmp_path, app_root, restore_root_logger):
    write_app(app_root)
    config_path = _write_config(tmp_path, app_root)
    with config_path.open("a", encoding="utf-8") as handle:
        handle.write("logging:\n  level: verbose\n")

    result = runner.invoke(app, ["-c", str(config_path), "serve", "--no-watch"])

    assert result.exit_code == 2
    assert "Unknown log level: verbose" in result.output


def test_serve_reports_failed_first_load_by_stage(tmp_path, app_root, restore_root_logger):
    (app_root / "bin").mkdir()
    config_path = _write_config(tmp_path, app_root)

    result = runner.invoke(app, ["-c", str(config_path), "serve", "--no-watch"])

    assert result.exit_code == 1
    assert "Initial load failed during load" in result.output
