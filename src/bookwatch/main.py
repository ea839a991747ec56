"""Bookwatch entry points.

``bookwatch`` runs one watcher pass and is meant to be invoked from cron.
``bookwatch-cleanup`` removes stale browser profiles and is scheduled
separately.

Exit codes: 0 on normal completion (including skipped targets), 1 when
configuration or state is unusable or the run crashed, 2 when another
run holds the lock.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from bookwatch.config import Settings
from bookwatch.errors import ConfigError, LockHeldError, StateError
from bookwatch.housekeeping import DEFAULT_MAX_AGE, cleanup_profiles
from bookwatch.lock import RunLock
from bookwatch.models import Mode
from bookwatch.notifier import Dispatcher, IftttCallTrigger, TelegramNotifier
from bookwatch.renderer import PlaywrightRenderer
from bookwatch.runner import Runner
from bookwatch.state import StateStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_FAULTED = 1
EXIT_LOCKED = 2


def setup_logging(log_file: Path | None = None, verbose: bool = False) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        format=LOG_FORMAT,
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=handlers,
        force=True,
    )
    # httpx logs every Telegram request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookwatch",
        description="Check booking pages once and alert on new showtimes.",
    )
    parser.add_argument("--state", type=Path, help="watch-target JSON file")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in Mode],
        help="alert per new theatre, or once on first availability",
    )
    parser.add_argument("--env-file", type=Path, help="dotenv file to load")
    parser.add_argument("--log-file", type=Path, help="append logs to this file")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="render and reconcile, but send nothing and don't save state",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env(env_file=args.env_file)
    overrides: dict = {"dry_run": args.dry_run}
    if args.state is not None:
        overrides["state_file"] = args.state
    if args.mode is not None:
        overrides["mode"] = Mode(args.mode)
    if args.log_file is not None:
        overrides["log_file"] = args.log_file
    return settings.with_overrides(**overrides)


async def async_main(settings: Settings) -> int:
    """Wire up collaborators and run one pass."""
    chat = TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id)
    call_trigger = None
    if settings.places_calls:
        call_trigger = IftttCallTrigger(settings.ifttt_webhook_url)
    elif settings.mode is Mode.FIRST_AVAILABILITY:
        logger.warning("IFTTT_WEBHOOK_API not set: alerts will not place a call")
    renderer = PlaywrightRenderer(
        settings.profile_dir,
        lookup_timeout=settings.lookup_timeout,
        stealth=settings.stealth,
    )
    runner = Runner(
        settings,
        StateStore(settings.state_file),
        renderer,
        Dispatcher(chat, settings.mode, call_trigger, dry_run=settings.dry_run),
    )

    try:
        await runner.run()
    except StateError as exc:
        logger.error("Error reading movies: %s", exc)
        return EXIT_FAULTED
    except Exception:
        logger.exception("Run aborted by unexpected error")
        return EXIT_FAULTED
    finally:
        await renderer.close()
        try:
            await chat.close()
        except Exception:
            logger.exception("Error shutting down Telegram bot")
    return EXIT_OK


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args)
    except ConfigError as exc:
        setup_logging(verbose=args.verbose)
        for problem in exc.problems:
            logger.error("Configuration error: %s", problem)
        return EXIT_FAULTED

    try:
        setup_logging(settings.log_file, args.verbose)
    except OSError as exc:
        setup_logging(verbose=args.verbose)
        logger.error("Error opening log file %s: %s", settings.log_file, exc)
        return EXIT_FAULTED

    try:
        with RunLock(settings.run_lock_file):
            return asyncio.run(async_main(settings))
    except LockHeldError as exc:
        logger.warning("Not starting: %s", exc)
        return EXIT_LOCKED
    except OSError as exc:
        logger.error("Error opening run lock %s: %s", settings.run_lock_file, exc)
        return EXIT_FAULTED


def main() -> None:
    sys.exit(run())


def cleanup_main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="bookwatch-cleanup",
        description="Delete stale browser profile directories.",
    )
    parser.add_argument(
        "--dir", type=Path, help="profile directory (default: BOOKWATCH_PROFILE_DIR)"
    )
    parser.add_argument(
        "--max-age",
        type=float,
        default=DEFAULT_MAX_AGE,
        help="minimum age in seconds (default: %(default)s)",
    )
    args = parser.parse_args(argv)
    setup_logging()

    directory = args.dir
    if directory is None:
        try:
            directory = Settings.from_env().profile_dir
        except ConfigError as exc:
            logger.error("Configuration error: %s", exc)
            sys.exit(EXIT_FAULTED)

    cleanup_profiles(directory, max_age=args.max_age)


if __name__ == "__main__":
    main()
