import argparse
import signal
import sys
import logging
import time
import _thread

from fibcursor.api import CursorServer, IndexJournal
from fibcursor.common import (
    ConfigManager,
    ConfigError,
    CacheConfigError,
    setup_logging,
)
from fibcursor.sequence import build_tracker


def _apply_overrides(config: ConfigManager, args: argparse.Namespace):
    """Copies explicitly given CLI flags over the loaded configuration."""
    overrides = {
        'api.port': args.port,
        'journal.path': args.file,
        'journal.interval_seconds': args.seconds,
        'sequence.tracker': args.tracker,
        'sequence.cache.backend': args.backend,
        'sequence.cache_pad': args.cache_pad,
        'sequence.probe_limit': args.probe_limit,
        'sequence.initial_fill': args.initial_fill,
    }
    if args.capacity is not None:
        overrides['sequence.cache.capacity'] = args.capacity
        overrides['sequence.dense.capacity'] = args.capacity
    if args.no_debug_routes:
        overrides['api.debug'] = False

    for key_path, value in overrides.items():
        if value is not None:
            config.update_runtime(key_path, value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Serve a cursor over the Fibonacci sequence (current / next / previous).",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--port", type=int, default=None, help="Port on which to expose the API (config default: 80).")
    parser.add_argument("--file", default=None, help="File to journal the sequence index to (config default: fibapi_backup).")
    parser.add_argument("--seconds", type=float, default=None, help="Seconds between each backup (config default: 3).")
    parser.add_argument("--config", "-c", default=None, help="Path to a YAML configuration file.")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable DEBUG level logging.")
    parser.add_argument("--json-logs", action="store_true", help="Log JSON lines instead of plain text.")
    parser.add_argument("--no-debug-routes", action="store_true", help="Do not register /debug/* and /health routes.")

    seq_group = parser.add_argument_group('Sequence Options')
    seq_group.add_argument("--tracker", choices=["sparse", "dense"], default=None, help="Tracker implementation.")
    seq_group.add_argument("--backend", choices=["slice", "lru"], default=None, help="Cache backend for the sparse tracker.")
    seq_group.add_argument("--cache-pad", dest="cache_pad", type=int, default=None, help="Interval between cached indices.")
    seq_group.add_argument("--probe-limit", dest="probe_limit", type=int, default=None, help="Cached anchors probed before recomputing from zero.")
    seq_group.add_argument("--capacity", type=int, default=None, help="Cached pairs (sparse) or prefix slots (dense).")
    seq_group.add_argument("--initial-fill", dest="initial_fill", type=int, default=None, help="Values to precompute at start-up.")
    return parser


def _handle_sigterm(signum, frame):
    raise SystemExit(0)


def main(argv=None):
    """
    Command-Line Interface for the Fibonacci cursor server.
    """
    args = build_parser().parse_args(argv)

    # --- Configuration & Logging ---
    config = ConfigManager(args.config)
    _apply_overrides(config, args)
    setup_logging(config, debug=args.debug, json_format=True if args.json_logs else None)
    logger = logging.getLogger(__name__)
    start_time = time.time()
    logger.info({"event": "cli_start", "args": vars(args)})

    # --- Tracker ---
    try:
        tracker = build_tracker(config.get_sequence_config())
    except (ConfigError, CacheConfigError) as e:
        logger.error({"event": "tracker_init", "status": "failed", "error": str(e)})
        print(f"ERROR: Invalid sequence configuration: {e}", file=sys.stderr)
        sys.exit(1)
    logger.info({"event": "tracker_init", "status": "success", "tracker": type(tracker).__name__})

    # --- Journal ---
    journal_config = config.get_journal_config()
    try:
        journal = IndexJournal(
            journal_config.get('path', 'fibapi_backup'),
            interval_seconds=journal_config.get('interval_seconds', 3),
            max_failures=journal_config.get('max_failures', 3),
            on_fatal=_thread.interrupt_main
        )
    except OSError as e:
        logger.error({"event": "journal_open", "status": "failed", "error": str(e)})
        print(f"ERROR: Could not open journal file: {e}", file=sys.stderr)
        sys.exit(1)

    # set starting index
    start_index = journal.read_index()
    if start_index is None:
        logger.info({"event": "cursor_restore", "index": 0, "message": "Starting sequence index at zero"})
        start_index = 0
    else:
        logger.info({"event": "cursor_restore", "index": start_index})

    api_config = config.get_api_config()
    server = CursorServer(tracker, journal=journal, debug=bool(api_config.get('debug', True)), start_index=start_index)
    app = server.make_router()

    # --- Serve ---
    signal.signal(signal.SIGTERM, _handle_sigterm)
    journal.start(lambda: server.current_index)
    host = api_config.get('host', '0.0.0.0')
    port = api_config.get('port', 80)
    logger.info({"event": "serve_start", "address": f"{host}:{port}"})
    try:
        app.run(host=host, port=port, threaded=True)
    except KeyboardInterrupt:
        logger.info({"event": "serve_interrupted"})
    finally:
        journal.close()
        logger.info({
            "event": "cli_end",
            "final_index": server.current_index,
            "cache_stats": tracker.cache_stats.as_dict(),
            "total_duration_seconds": round(time.time() - start_time, 3)
        })

    if journal.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
