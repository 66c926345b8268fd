from __future__ import annotations

import logging
import signal
import threading

import uvicorn

from ..api_main import create_app
from ..config import Config
from ..connectors.nomad import NomadClient
from ..durations import format_duration
from ..errors import CleanupError, ConfigError, NomadError
from ..logging_utils import setup_logging
from .cleanup import Housekeeper

log = logging.getLogger("housekeeper")

EXIT_OK = 0
EXIT_FATAL = 1


class HealthServer:
    """Uvicorn serving the health app on a daemon thread."""

    def __init__(self, app, config: Config, stop: threading.Event):
        self.stop = stop
        self.failed = threading.Event()
        self.server = uvicorn.Server(
            uvicorn.Config(app, host=config.host, port=config.port, log_config=None, access_log=config.debug)
        )
        self.thread = threading.Thread(target=self._run, name="health-server", daemon=True)

    def _run(self) -> None:
        try:
            self.server.run()
        except (Exception, SystemExit):
            # uvicorn exits via SystemExit when it cannot bind.
            log.exception("health server crashed")
        if not self.stop.is_set():
            log.error("health server stopped unexpectedly")
            self.failed.set()
            self.stop.set()

    def start(self) -> None:
        self.thread.start()

    def shutdown(self, timeout: float = 5.0) -> None:
        self.server.should_exit = True
        self.thread.join(timeout)


def install_signal_handlers(stop: threading.Event) -> None:
    def _handler(signum, _frame):
        log.info("Signal received, gracefully shutting down", extra={"signal": signal.Signals(signum).name})
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def run_once(housekeeper: Housekeeper) -> int:
    try:
        housekeeper.run_cycle()
    except CleanupError as e:
        log.critical("%s", e)
        return EXIT_FATAL
    return EXIT_OK


def run_loop(housekeeper: Housekeeper, config: Config, stop: threading.Event) -> int:
    """Run a cycle every `config.interval` until `stop` is set.

    A cycle in progress always finishes; the stop event only cuts the wait
    between cycles short.
    """
    interval = config.interval.total_seconds()
    while not stop.wait(interval):
        try:
            housekeeper.run_cycle()
        except CleanupError as e:
            if config.exit_on_error:
                log.critical("%s", e)
                return EXIT_FATAL
            log.error("%s; retrying in %s", e, format_duration(config.interval))
    return EXIT_OK


def main(environ=None) -> int:
    setup_logging()
    try:
        config = Config.from_env(environ)
    except ConfigError as e:
        log.critical("Could not initialize config: %s", e)
        return EXIT_FATAL
    setup_logging(debug=config.debug)

    try:
        client = NomadClient.from_env(environ, timeout=config.http_timeout.total_seconds())
    except NomadError as e:
        log.critical("Could not initialize nomad client: %s", e)
        return EXIT_FATAL

    housekeeper = Housekeeper(client, config)
    log.info(
        "housekeeper starting",
        extra={
            "interval": format_duration(config.interval),
            "dry_run": config.dry_run,
            "once": config.once,
            "nomad_addr": client.address,
        },
    )

    if config.once:
        return run_once(housekeeper)

    stop = threading.Event()
    install_signal_handlers(stop)

    server = HealthServer(create_app(client, config), config, stop)
    server.start()
    try:
        code = run_loop(housekeeper, config, stop)
    finally:
        server.shutdown()
    if server.failed.is_set():
        return EXIT_FATAL
    return code


def cli() -> None:
    raise SystemExit(main())
