#
# Copyright (c) Granulate. All rights reserved.
# Licensed under the AGPL3 License. See LICENSE.md in the project root for license information.
#
import logging
import signal
import sys
import time
import uuid
from types import FrameType
from typing import List, Optional

import configargparse
import humanfriendly

from sysflux import __version__
from sysflux.agent import Agent
from sysflux.buffer import DEFAULT_MAX_ENTRIES
from sysflux.client import DEFAULT_REQUEST_TIMEOUT, InfluxWriteClient
from sysflux.endpoint import DEFAULT_DATABASE, DEFAULT_URL, build_endpoint
from sysflux.exceptions import ConfigError
from sysflux.log import (
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_MAX_SIZE,
    default_log_file,
    initial_root_logger_setup,
    set_run_id,
)
from sysflux.reporter import DEFAULT_REPORT_INTERVAL_SECONDS
from sysflux.sender import DEFAULT_POLL_INTERVAL_SECONDS
from sysflux.sysflux_types import positive_integer, positive_timespan

logger: logging.LoggerAdapter

DEFAULT_CONFIG_FILE = "/etc/sysflux/config.ini"

# 1 KeyboardInterrupt raised per this many seconds, no matter how many SIGINTs we get.
SIGINT_RATELIMIT = 0.5

last_signal_ts: Optional[float] = None


def sigint_handler(sig: int, frame: Optional[FrameType]) -> None:
    global last_signal_ts
    ts = time.monotonic()
    # no need for atomicity here: we can't get another SIGINT before this one returns.
    if last_signal_ts is None or ts > last_signal_ts + SIGINT_RATELIMIT:
        last_signal_ts = ts
        raise KeyboardInterrupt


def parse_cmd_args(argv: Optional[List[str]] = None) -> configargparse.Namespace:
    parser = configargparse.ArgumentParser(
        description="sysflux samples system load and memory usage and reports them to InfluxDB.",
        auto_env_var_prefix="sysflux_",
        add_config_file_help=True,
        add_env_var_help=False,
        default_config_files=[DEFAULT_CONFIG_FILE],
    )
    parser.add_argument("--config", is_config_file=True, help="Config file path")
    parser.add_argument("--url", default=DEFAULT_URL, help="InfluxDB URL (default: %(default)s)")
    parser.add_argument("--database", default=DEFAULT_DATABASE, help="InfluxDB database (default: %(default)s)")
    parser.add_argument(
        "--interval",
        type=positive_timespan,
        default=DEFAULT_REPORT_INTERVAL_SECONDS,
        help="Time between reports, for example '30s' or '5m' (default: 5m)",
    )
    parser.add_argument(
        "--tags",
        default="",
        help='InfluxDB tags in the form "<tag>=<value>,<tag>=<value>", added to every metric',
    )
    parser.add_argument(
        "--dns-server",
        default=None,
        help="Resolve the InfluxDB host through this DNS server ('ip' or 'ip:port') before every send",
    )

    delivery = parser.add_argument_group("delivery")
    delivery.add_argument(
        "--max-entries",
        type=positive_integer,
        default=DEFAULT_MAX_ENTRIES,
        help="Maximum number of unsent entries to keep, the oldest are dropped first (default: %(default)s)",
    )
    delivery.add_argument(
        "--poll-interval",
        type=positive_timespan,
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        help="Time between checks for pending entries (default: 1s)",
    )
    delivery.add_argument(
        "--request-timeout",
        type=positive_integer,
        default=DEFAULT_REQUEST_TIMEOUT,
        help="Timeout for write requests in seconds (default: %(default)s)",
    )
    delivery.add_argument(
        "--curlify-requests", help="Log cURL commands for HTTP requests (used for debugging)", action="store_true"
    )
    delivery.add_argument(
        "--backoff-jitter",
        action="store_true",
        help="Randomize retry delays by up to 20%% so that many agents do not retry in lockstep",
    )
    delivery.add_argument("--no-verify", help="Do not verify server certificates", action="store_false", dest="verify")

    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("-v", "--verbose", action="store_true", default=False, dest="verbose")

    logging_options = parser.add_argument_group("logging")
    logging_options.add_argument(
        "--log-file",
        action="store",
        type=str,
        dest="log_file",
        default=default_log_file(),
        help="Log file path, or an empty string to disable the log file (default: %(default)s)",
    )
    logging_options.add_argument(
        "--log-rotate-max-size",
        action="store",
        type=positive_integer,
        dest="log_rotate_max_size",
        default=DEFAULT_LOG_MAX_SIZE,
    )
    logging_options.add_argument(
        "--log-rotate-backup-count",
        action="store",
        type=positive_integer,
        dest="log_rotate_backup_count",
        default=DEFAULT_LOG_BACKUP_COUNT,
    )

    return parser.parse_args(argv)


def setup_signals() -> None:
    signal.signal(signal.SIGINT, sigint_handler)
    # handle SIGTERM in the same manner - gracefully stop sysflux.
    signal.signal(signal.SIGTERM, sigint_handler)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_cmd_args(argv)

    set_run_id(str(uuid.uuid4()))
    global logger
    logger = initial_root_logger_setup(
        logging.DEBUG if args.verbose else logging.INFO,
        args.log_file,
        args.log_rotate_max_size,
        args.log_rotate_backup_count,
    )

    try:
        endpoint = build_endpoint(args.url, args.database, args.tags, args.dns_server)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Running sysflux {__version__}")
    logger.info(f"Using InfluxDB endpoint: {endpoint.url}")
    logger.info(f"Reporting every {humanfriendly.format_timespan(args.interval)}")
    if endpoint.dns_server is not None:
        logger.info(f"Resolving {endpoint.hostname!r} via DNS server {endpoint.dns_server!r}")

    setup_signals()
    agent = Agent(
        endpoint=endpoint,
        client=InfluxWriteClient(
            timeout=args.request_timeout, verify=args.verify, curlify_requests=args.curlify_requests
        ),
        interval=args.interval,
        max_entries=args.max_entries,
        poll_interval=args.poll_interval,
        backoff_jitter=args.backoff_jitter,
    )
    try:
        agent.run()
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("Unexpected error occurred")
        sys.exit(1)


if __name__ == "__main__":
    main()
