"""Tests for the command line entry point."""

import os

from storefront_server import cli, http_server


class TestCli:

    def test_defaults(self):
        args = cli.build_parser().parse_args([])
        assert args.mode == "stdio"
        assert args.port == 8000
        assert args.reload is False

    def test_http_mode_with_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STOREFRONT_API_URL", "http://localhost:5000/api")
        monkeypatch.setenv("STOREFRONT_STATE_DIR", "unused")
        calls = []
        monkeypatch.setattr(http_server, "run_http_server", lambda **kwargs: calls.append(kwargs))

        cli.main([
            "--mode", "http",
            "--port", "9001",
            "--api-url", "https://shop.test/api",
            "--state-dir", str(tmp_path),
        ])

        assert calls == [{"host": "0.0.0.0", "port": 9001, "reload": False}]
        assert os.environ["STOREFRONT_API_URL"] == "https://shop.test/api"
        assert os.environ["STOREFRONT_STATE_DIR"] == str(tmp_path)
