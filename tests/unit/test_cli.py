"""Tests for the command-line entry and run() dispatch."""

from pathlib import Path

import pytest

import icalswitch
from icalswitch import driver as driver_module
from icalswitch.__main__ import _create_parser

pytestmark = pytest.mark.unit


class TestParser:
    def test_parse_when_no_args_then_defaults(self) -> None:
        args = _create_parser().parse_args([])
        assert args.config is None
        assert args.url is None
        assert args.once is False
        assert args.serve is False
        assert args.port is None

    def test_parse_when_all_options(self) -> None:
        args = _create_parser().parse_args(
            ["--config", "c.yaml", "--url", "https://x.example/a.ics", "--once", "--port", "9000"]
        )
        assert args.config == "c.yaml"
        assert args.url == "https://x.example/a.ics"
        assert args.once is True
        assert args.port == 9000


class TestRun:
    def test_run_when_once_then_single_run_with_cli_overrides(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("ICALSWITCH_ICS_URL", raising=False)
        config_file = tmp_path / "switch.yaml"
        config_file.write_text("poll_seconds: 120\n", encoding="utf-8")
        calls = []
        monkeypatch.setattr(driver_module, "run_single", calls.append)
        monkeypatch.setattr(driver_module, "run_forever", lambda *a, **kw: pytest.fail("served"))

        args = _create_parser().parse_args(
            ["--config", str(config_file), "--url", "https://x.example/a.ics", "--once"]
        )
        icalswitch.run(args)

        assert len(calls) == 1
        assert calls[0].ics_url == "https://x.example/a.ics"
        assert calls[0].poll_seconds == 120

    def test_run_when_serve_then_run_forever(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        seen = {}

        def fake_run_forever(config, serve=False):
            seen["serve"] = serve
            seen["port"] = config.server_port

        monkeypatch.setattr(driver_module, "run_forever", fake_run_forever)

        args = _create_parser().parse_args(
            ["--config", str(tmp_path / "missing.yaml"), "--serve", "--port", "9100"]
        )
        icalswitch.run(args)

        assert seen == {"serve": True, "port": 9100}
