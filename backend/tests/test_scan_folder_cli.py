"""
Tests for the scan_folder command-line script.
"""
import importlib.util
from pathlib import Path

import pytest

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "scan_folder.py"


@pytest.fixture
def cli():
    spec = importlib.util.spec_from_file_location("scan_folder", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestParseArgs:
    def test_defaults_follow_settings(self, cli, monkeypatch):
        monkeypatch.setattr(cli, "settings", cli.settings.with_overrides(force_reimport=True, prune_missing_files=True))
        args = cli.parse_args(["/data"])
        assert args.folder == "/data"
        assert args.force is True
        assert args.prune is True

    def test_flags_can_switch_off_environment_defaults(self, cli, monkeypatch):
        monkeypatch.setattr(cli, "settings", cli.settings.with_overrides(force_reimport=True, prune_missing_files=True))
        args = cli.parse_args(["/data", "--no-force", "--no-prune"])
        assert args.force is False
        assert args.prune is False

    def test_flags_switch_on(self, cli, monkeypatch):
        monkeypatch.setattr(cli, "settings", cli.settings.with_overrides(force_reimport=False, prune_missing_files=False))
        args = cli.parse_args(["--force", "--prune", "--workers", "2"])
        assert args.force is True
        assert args.prune is True
        assert args.workers == 2
