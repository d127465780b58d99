"""Tests for the ghping command line."""
from unittest.mock import AsyncMock, patch

import pytest
from conftest import FakeFeed, RecordingSink, raw_thread

from ghping import cli
from ghping.adapters.registry import AdapterConfig
from ghping.core.config import EXAMPLE_CONFIG, LOCAL_CONFIG_NAME, PingConfig


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("ghping.cli.configure_logging"):
        yield


class TestParser:
    def test_global_options_and_subcommand(self):
        args = cli.build_parser().parse_args(["--config", "x.yaml", "-v", "once"])

        assert args.config == "x.yaml"
        assert args.verbose is True
        assert args.command == "once"

    def test_init_arguments(self):
        args = cli.build_parser().parse_args(["init", "cfg.yaml", "--force"])

        assert args.path == "cfg.yaml"
        assert args.force is True

    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 0
        assert "usage" in capsys.readouterr().out


class TestInit:
    def test_writes_example_in_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert cli.main(["init"]) == 0
        assert (tmp_path / LOCAL_CONFIG_NAME).read_text() == EXAMPLE_CONFIG

    def test_refuses_to_overwrite(self, tmp_path, capsys):
        target = tmp_path / "cfg.yaml"
        target.write_text("sound: false\n")

        assert cli.main(["init", str(target)]) == 1
        assert target.read_text() == "sound: false\n"
        assert "already exists" in capsys.readouterr().out

    def test_force_overwrites(self, tmp_path):
        target = tmp_path / "nested" / "cfg.yaml"
        target.parent.mkdir()
        target.write_text("sound: false\n")

        assert cli.main(["init", str(target), "--force"]) == 0
        assert target.read_text() == EXAMPLE_CONFIG


class TestRunOnce:
    def test_missing_config_fails(self, tmp_path):
        assert cli.main(["--config", str(tmp_path / "missing.yaml"), "once"]) == 1

    def test_invalid_config_fails(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("sound: maybe-later\n")

        assert cli.main(["--config", str(path), "once"]) == 1

    def test_unknown_adapter_fails(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("alerts:\n  type: carrier-pigeon\n")

        assert cli.main(["--config", str(path), "once"]) == 1

    def test_once_polls_and_delivers(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("sound: false\n")
        feed = FakeFeed(notifications=[raw_thread("R1", subject_type="Release", title="v2.0")])
        sink = RecordingSink()

        with patch(
            "ghping.cli._build_adapters", return_value=AdapterConfig(feed=feed, sink=sink)
        ):
            assert cli.main(["--config", str(path), "once"]) == 0

        assert sink.titles == ['New release "v2.0"']


class TestCheck:
    @pytest.mark.asyncio
    async def test_reports_authentication_failure(self, tmp_path, capsys):
        path = tmp_path / "cfg.yaml"
        path.write_text("sound: true\n")
        feed = FakeFeed(viewer=None)

        with patch(
            "ghping.cli._build_adapters",
            return_value=AdapterConfig(feed=feed, sink=RecordingSink()),
        ):
            code = await cli._check(str(path))

        out = capsys.readouterr().out
        assert code == 1
        assert "Not authenticated" in out
        assert "Skipped (not authenticated)" in out

    @pytest.mark.asyncio
    async def test_reports_fetched_notifications(self, tmp_path, capsys):
        path = tmp_path / "cfg.yaml"
        path.write_text("skip_threads:\n  - reason: subscribed\n")
        feed = FakeFeed(notifications=[raw_thread("1", title="Add caching layer")])
        feed.check_auth = AsyncMock(return_value=(True, None))

        with patch(
            "ghping.cli._build_adapters",
            return_value=AdapterConfig(feed=feed, sink=RecordingSink()),
        ):
            code = await cli._check(str(path))

        out = capsys.readouterr().out
        assert code == 0
        assert "Thread filters: 1" in out
        assert "Fetched 1 notifications" in out
        assert "[PullRequest] Add caching layer" in out

    @pytest.mark.asyncio
    async def test_sends_test_alert_through_sink(self, tmp_path, capsys):
        path = tmp_path / "cfg.yaml"
        path.write_text("sound: true\n")
        feed = FakeFeed()
        feed.check_auth = AsyncMock(return_value=(True, None))
        sink = RecordingSink()

        with patch(
            "ghping.cli._build_adapters", return_value=AdapterConfig(feed=feed, sink=sink)
        ):
            code = await cli._check(str(path))

        assert code == 0
        assert sink.delivered == [("ghping test", "Test alert - ghping is working!", "ghping-test")]
        assert "✔ Test alert sent (recording)" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_failing_sink_fails_check(self, tmp_path, capsys):
        path = tmp_path / "cfg.yaml"
        path.write_text("sound: true\n")
        feed = FakeFeed()
        feed.check_auth = AsyncMock(return_value=(True, None))
        sink = RecordingSink(fail_titles={"ghping test"})

        with patch(
            "ghping.cli._build_adapters", return_value=AdapterConfig(feed=feed, sink=sink)
        ):
            code = await cli._check(str(path))

        assert code == 1
        assert sink.delivered == []
        assert "✖ Failed to send test alert: sink down" in capsys.readouterr().out

    def test_unusable_config(self, tmp_path):
        assert cli.main(["--config", str(tmp_path / "missing.yaml"), "check"]) == 1
