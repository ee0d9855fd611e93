"""Command line entry point for the scheduled IPTV recorder.

Three subcommands are provided:

 - ``record``: the recorder process itself.  It receives a complete
   recording request as a positional vector (see
   :mod:`iptvrec.recorder.request`), runs the scheduler and exits with its
   code.  Resumed successors are started the same way.
 - ``schedule``: finds a channel in the configured playlist and launches a
   detached ``record`` process for it.
 - ``channels``: lists playlist channels matching a query.

Run this module directly:

    python -m iptvrec.app schedule --channel "SVT1" --start 20:00 --stop 21:30
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from .config.config import CAPTURE_MODES, load_config
from .playlist.m3u import find_channels, load_playlist
from .recorder.request import WIRE_FIELDS, CaptureMode, RecordingRequest, RetryPolicy
from .recorder.resume import recorder_command, spawn_detached
from .scheduler.scheduler import EXIT_FAILURE, Scheduler
from .utils.logger import configure_logging, install_excepthooks

logger = structlog.get_logger(__name__)

EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="iptvrec", description="Scheduled IPTV stream recorder")
    sub = parser.add_subparsers(dest="command", required=True)

    record = sub.add_parser(
        "record",
        help="run one recording (normally started by 'schedule' or a resume)",
        description="Fields, in order: wire version, " + ", ".join(WIRE_FIELDS),
    )
    record.add_argument("request", nargs=argparse.REMAINDER, help="positional request vector")

    schedule = sub.add_parser("schedule", help="schedule a recording in the background")
    schedule.add_argument("--channel", required=True, help="channel name (tvg-name or display name)")
    schedule.add_argument("--start", required=True, help="start time of day, HH:MM")
    schedule.add_argument("--stop", required=True, help="stop time of day, HH:MM")
    schedule.add_argument("--config", help="path to config.yaml")
    schedule.add_argument("--playlist", help="playlist file or URL, overrides the config")
    schedule.add_argument("--mode", choices=CAPTURE_MODES, help="capture mode, overrides the config")

    channels = sub.add_parser("channels", help="list playlist channels")
    channels.add_argument("query", nargs="?", default="", help="name filter")
    channels.add_argument("--config", help="path to config.yaml")
    channels.add_argument("--playlist", help="playlist file or URL, overrides the config")
    return parser


def run_record(parser: argparse.ArgumentParser, argv: List[str]) -> int:
    """Runs the recorder process for a request vector."""
    try:
        request = RecordingRequest.from_argv(argv)
    except ValueError as e:
        parser.error(f"invalid recording request: {e}")
    config, _ = load_config(request.config_path)
    configure_logging(config, log_file=request.log_file)
    install_excepthooks()
    scheduler = Scheduler(request, config)
    try:
        return asyncio.run(scheduler.run())
    except KeyboardInterrupt:
        logger.warning("recording interrupted")
        return EXIT_FAILURE


def _load_channels(args, config):
    source = args.playlist or config.playlist
    if not source:
        logger.error("no playlist configured, set 'playlist' or pass --playlist")
        return None
    return load_playlist(source)


def run_schedule(args) -> int:
    """Builds a request for the chosen channel and starts a detached recorder."""
    config, config_path = load_config(args.config)
    configure_logging(config)
    channels = _load_channels(args, config)
    if channels is None:
        return EXIT_FAILURE
    matches = find_channels(channels, args.channel)
    if not matches:
        logger.error("no channel matches", query=args.channel)
        return EXIT_FAILURE
    channel = matches[0]
    if len(matches) > 1:
        logger.warning("several channels match, using the first",
                       query=args.channel, chosen=channel.display_name, matches=len(matches))

    try:
        request = RecordingRequest(
            source_url=channel.url,
            destination_root=config.destination_root.expanduser().absolute(),
            start_time=args.start,
            stop_time=args.stop,
            timezone=config.timezone,
            capture_mode=CaptureMode(args.mode or config.capture_mode),
            channel=channel.info(),
            retry=RetryPolicy(config.retry_max_attempts, config.retry_delay_seconds),
            is_24_hour=config.is_24_hour,
            config_path=str(config_path.absolute()),
            log_file=str(config.log_file) if config.log_file else None,
        )
    except ValueError as e:
        logger.error("invalid recording window", error=str(e))
        return EXIT_USAGE

    process = spawn_detached(recorder_command(request))
    if process.poll() is not None:
        logger.error("recorder process exited immediately", returncode=process.returncode)
        return EXIT_FAILURE
    logger.info("recording scheduled", channel=channel.display_name, pid=process.pid,
                start_time=request.start_time, stop_time=request.stop_time,
                mode=request.capture_mode.value)
    return 0


def run_channels(args) -> int:
    config, _ = load_config(args.config)
    configure_logging(config)
    channels = _load_channels(args, config)
    if channels is None:
        return EXIT_FAILURE
    if args.query:
        channels = find_channels(channels, args.query)
    for channel in channels:
        print(f"{channel.code:>8}  {channel.display_name}  [{channel.group_title}]")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "record":
        code = run_record(parser, args.request)
    elif args.command == "schedule":
        code = run_schedule(args)
    else:
        code = run_channels(args)
    sys.exit(code)


if __name__ == "__main__":
    main()
