"""
Tests for the command-line front end.
"""

import io
import types

import pytest
from aioresponses import aioresponses

from reqprobe import app
from reqprobe.utils.config import OutputFormat, load_config


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(app, "setup_logging", lambda config: None)


@pytest.fixture
def stdin_lines(monkeypatch):
    def _feed(*lines):
        data = "".join(f"{line}\n" for line in lines).encode("utf-8")
        monkeypatch.setattr(app.sys, "stdin", types.SimpleNamespace(buffer=io.BytesIO(data)))
    return _feed


@pytest.mark.unit
class TestArgumentParsing:

    def test_only_given_values_become_overrides(self):
        args = app.build_parser().parse_args(["--retry", "2", "-H", "A: 1", "-H", "B: 2"])
        overrides = app.overrides_from_args(args)
        assert overrides["network"] == {"retry": 2}
        assert overrides["http"] == {"headers": ["A: 1", "B: 2"]}
        assert overrides["output"] == {}
        assert overrides["monitoring"] == {}

    def test_full_flag_set(self):
        args = app.build_parser().parse_args([
            "--timeout", "5", "--delay", "100", "--concurrency", "4", "--rate-limit", "10",
            "--random-delay", "1:5", "--proxy", "http://127.0.0.1:8080", "--verify-ssl",
            "--no-follow-redirect", "--http2", "-o", "out.csv", "-f", "csv", "-S", "%url",
            "--include-req", "--include-res", "--include-title", "--no-color",
            "--filter-status", "200,404", "--filter-string", "ok", "--filter-regex", "o+",
            "--log-level", "DEBUG", "--metrics-port", "9100",
        ])
        config = load_config(None, app.overrides_from_args(args))

        assert config.network.timeout == 5
        assert config.network.concurrency == 4
        assert config.network.verify_ssl is True
        assert config.http.follow_redirect is False
        assert config.http.http2 is True
        assert config.output.format is OutputFormat.CSV
        assert config.output.strf == "%url"
        assert config.filter.filter_status == frozenset({200, 404})
        assert config.logging.level == "DEBUG"
        assert config.monitoring.metrics_enabled is True
        assert config.monitoring.prometheus_port == 9100

    def test_http2_help_states_transport_version(self):
        help_text = " ".join(app.build_parser().format_help().split())
        assert "Requests are still sent as HTTP/1.1" in help_text

    def test_invalid_status_list(self):
        with pytest.raises(SystemExit):
            app.build_parser().parse_args(["--filter-status", "200,abc"])


@pytest.mark.unit
class TestMain:

    def test_invalid_config_exits_1(self, capsys):
        assert app.main(["--timeout", "0"]) == 1
        assert "timeout must be positive" in capsys.readouterr().err

    def test_bad_proxy_exits_1(self, stdin_lines):
        stdin_lines("https://a.test/")
        assert app.main(["--proxy", "socks5://127.0.0.1:1080"]) == 1

    def test_unopenable_output_exits_1(self, stdin_lines, tmp_path):
        stdin_lines("https://a.test/")
        assert app.main(["-o", str(tmp_path / "missing" / "out.txt")]) == 1

    def test_probe_to_file(self, stdin_lines, tmp_path):
        stdin_lines("https://a.test/", "", "https://b.test/")
        out = tmp_path / "out.txt"
        with aioresponses() as m:
            m.get("https://a.test/", status=200)
            m.get("https://b.test/", status=404)
            code = app.main(["-o", str(out), "-S", "%url %code", "--concurrency", "1"])

        assert code == 0
        assert sorted(out.read_text(encoding="utf-8").splitlines()) == [
            "https://a.test/ 200",
            "https://b.test/ 404",
        ]
