"""Tests for `kitbridge init` command."""

from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from kitbridge.cli import cli
from kitbridge.commands.init import TEMPLATE_YAML
from kitbridge.config.parser import DEFAULT_CONFIG_NAME, load_config


class TestInit:
    def test_creates_config(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            result = runner.invoke(cli, ["init"])
            assert result.exit_code == 0
            assert f"Created {DEFAULT_CONFIG_NAME}" in result.output
            assert Path(DEFAULT_CONFIG_NAME).read_text() == TEMPLATE_YAML
            assert load_config(Path(DEFAULT_CONFIG_NAME)).session.record is False

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path(DEFAULT_CONFIG_NAME).write_text("version: '1'\n")
            result = runner.invoke(cli, ["init"])
            assert result.exit_code == 1
            assert "already exists" in result.output
            assert Path(DEFAULT_CONFIG_NAME).read_text() == "version: '1'\n"

    def test_force_overwrites(self, tmp_path: Path) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem(temp_dir=tmp_path):
            Path(DEFAULT_CONFIG_NAME).write_text("version: '1'\n")
            result = runner.invoke(cli, ["init", "--force"])
            assert result.exit_code == 0
            assert Path(DEFAULT_CONFIG_NAME).read_text() == TEMPLATE_YAML
