import argparse
import asyncio
import logging
import signal
import sys
from datetime import UTC, datetime
from pathlib import Path

from ghping.adapters.registry import AdapterConfig, AdapterRegistry
from ghping.core.config import (
    EXAMPLE_CONFIG,
    ConfigNotFoundError,
    ConfigValidationError,
    LOCAL_CONFIG_NAME,
    PingConfig,
    global_config_path,
    load_config,
)
from ghping.core.models import Repository, Subject, Thread
from ghping.core.poller import PollState, poll_once, run_forever

logger = logging.getLogger("ghping")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TEST_ALERT_TITLE = "ghping test"
NOTIFICATIONS_URL = "https://github.com/notifications"


def configure_logging(verbose: bool = False, log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        handlers = [logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")]
    logging.basicConfig(
        format=LOG_FORMAT,
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=handlers,
        force=True,
    )


def _load(path: str | None) -> PingConfig | None:
    try:
        config, found = load_config(path)
    except ConfigNotFoundError as exc:
        logger.error(str(exc))
        logger.error('Run "ghping init" to create one')
        return None
    except ConfigValidationError as exc:
        logger.error(str(exc))
        return None
    logger.info(f"Config loaded from {found}")
    return config


def _build_adapters(config: PingConfig) -> AdapterConfig | None:
    try:
        return AdapterRegistry().from_config({"feed": config.feed, "alerts": config.alerts})
    except (ImportError, TypeError, ValueError) as exc:
        logger.error(f"Could not set up adapters: {exc}")
        return None


async def _run(config: PingConfig, once: bool) -> int:
    adapters = _build_adapters(config)
    if adapters is None:
        return 1
    state = PollState.from_config(config)
    try:
        if once:
            result = await poll_once(config, adapters.feed, adapters.sink, state)
            logger.info(
                f"Fetched {result.fetched}, kept {result.kept}, "
                f"skipped {result.skipped}, delivered {result.delivered}, "
                f"failed {result.failed}"
            )
            return 0

        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        def _signal_handler() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)

        await run_forever(config, adapters.feed, adapters.sink, state, stop_event)
        return 0
    finally:
        await adapters.aclose()


def _test_thread() -> Thread:
    """Stand-in thread for the test alert; clicking it opens the notifications inbox."""
    return Thread(
        id="ghping-test",
        reason="subscribed",
        subject=Subject(type="Issue", title=TEST_ALERT_TITLE, html_url=NOTIFICATIONS_URL),
        repository=Repository(
            full_name="ghping/test", name="test", owner="ghping", html_url=NOTIFICATIONS_URL
        ),
        unread=True,
        updated_at=datetime.now(UTC),
    )


async def _check(config_path: str | None) -> int:
    ok = True

    print("1. Loading config")
    config = _load(config_path)
    if config is None:
        print("   ✖ Config not usable")
        return 1
    print(f"   ✔ Thread filters: {len(config.skip_threads)}")
    print(f"   ✔ Activity filters: {len(config.skip_activities)}")

    print("2. Checking feed authentication")
    adapters = _build_adapters(config)
    if adapters is None:
        print("   ✖ Feed could not be created")
        return 1
    try:
        authenticated, error = await adapters.feed.check_auth()
        if authenticated:
            print(f"   ✔ Authenticated ({adapters.feed.name})")
        else:
            print(f"   ✖ Not authenticated: {error}")
            ok = False

        print("3. Fetching notifications")
        if not authenticated:
            print("   ⊘ Skipped (not authenticated)")
        else:
            try:
                page = await adapters.feed.fetch_threads()
            except Exception as exc:
                print(f"   ✖ Fetch failed: {exc}")
                ok = False
            else:
                print(f"   ✔ Fetched {len(page.threads)} notifications")
                print(f"     Poll interval: {page.poll_interval}s")
                if page.threads:
                    sample = page.threads[0]
                    print(f"     Sample: [{sample.subject.type}] {sample.subject.title}")

        print("4. Sending test alert")
        try:
            await adapters.sink.deliver(
                TEST_ALERT_TITLE, "Test alert - ghping is working!", _test_thread(), config
            )
        except Exception as exc:
            print(f"   ✖ Failed to send test alert: {exc}")
            ok = False
        else:
            print(f"   ✔ Test alert sent ({adapters.sink.name})")
    finally:
        await adapters.aclose()
    return 0 if ok else 1


def _init(path: str | None, force: bool) -> int:
    target = Path(path).expanduser() if path else Path.cwd() / LOCAL_CONFIG_NAME
    if target.exists() and not force:
        print(f"{target} already exists (use --force to overwrite)")
        return 1
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(EXAMPLE_CONFIG, encoding="utf-8")
    print(f"Wrote {target}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="GitHub notification alerts")
    parser.add_argument("--config", help="Path to the YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Append logs to this file instead of stderr")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Poll in the foreground until interrupted")
    subparsers.add_parser("once", help="Run a single poll cycle")
    subparsers.add_parser("check", help="Check config, feed access and alert delivery")

    init_parser = subparsers.add_parser("init", help="Write an example config file")
    init_parser.add_argument(
        "path",
        nargs="?",
        help=f"Target file (default ./{LOCAL_CONFIG_NAME}; global: {global_config_path()})",
    )
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    if args.command == "init":
        return _init(args.path, args.force)
    if args.command == "check":
        return asyncio.run(_check(args.config))
    if args.command in ("run", "once"):
        config = _load(args.config)
        if config is None:
            return 1
        return asyncio.run(_run(config, once=args.command == "once"))

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
