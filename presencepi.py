#!/usr/bin/env python3
"""Presence to Raspberry Pi LED bridge."""

import argparse
import asyncio
import ipaddress
import logging
import signal
import sys
import threading
from typing import List, Optional

from constants import DEFAULT_CONFIG_FILE, EXIT_KEY
from presence_app import PresencePi, load_config

logger = logging.getLogger(__name__)

DESCRIPTION = (
    "Shows your presence on the LEDs of a Raspberry Pi running WebIOPi. "
    "Use --test to cycle through each light so you can check the wiring."
)


class UsageArgumentParser(argparse.ArgumentParser):
    """Prints usage and exits with status 1 on bad arguments."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def device_host(value: str) -> str:
    """Accept a dotted IPv4 address whose first octet is 1-254 and others 0-254."""
    parts = value.strip().split(".")
    if len(parts) != 4 or not all(p.isdigit() for p in parts):
        raise argparse.ArgumentTypeError(f"invalid IP address: {value!r}")
    octets = [int(p) for p in parts]
    if not 1 <= octets[0] < 255 or any(o >= 255 for o in octets[1:]):
        raise argparse.ArgumentTypeError(f"invalid IP address: {value!r}")
    return str(ipaddress.IPv4Address(".".join(str(o) for o in octets)))


def device_port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = UsageArgumentParser(prog="presencepi", description=DESCRIPTION)
    parser.add_argument("host", type=device_host, help="IP address of the Raspberry Pi running WebIOPi")
    parser.add_argument("port", type=device_port, help="port the WebIOPi REST service listens on")
    parser.add_argument("userid", help="WebIOPi user id")
    parser.add_argument("password", help="WebIOPi password")
    parser.add_argument("--test", action="store_true", help="cycle through each LED to check the wiring")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="YAML settings file")
    return parser


def _watch_console(loop: asyncio.AbstractEventLoop, on_exit):
    """Wait for the exit key on stdin and call ``on_exit`` on the loop."""
    while True:
        print(f"\nMonitoring presence - Enter '{EXIT_KEY}' to exit")
        try:
            line = sys.stdin.readline()
        except (OSError, ValueError):
            return
        if not line:
            return  # stdin closed, keep running until signalled
        if line.strip().lower() == EXIT_KEY:
            loop.call_soon_threadsafe(on_exit)
            return


async def main(args: argparse.Namespace) -> int:
    """Main entry point."""
    exit_code = 0
    try:
        config = load_config(args.config)
        app = PresencePi(args.host, args.port, args.userid, args.password, config, run_test=args.test)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info(f"Using WebIOPi on {args.host}:{args.port} using id {args.userid}")
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    async def runner():
        nonlocal exit_code
        try:
            await app.start()
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"An error occurred initializing the presence monitor: {e}", exc_info=True)
            exit_code = 1
        finally:
            await app.stop()
            stop_event.set()

    task = loop.create_task(runner())

    def _shutdown():
        if not task.done():
            logger.info("Shutting down...")
            task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _shutdown)
        except NotImplementedError:
            pass

    async def watch_exit_key():
        await app.ready.wait()
        threading.Thread(target=_watch_console, args=(loop, _shutdown), name="console", daemon=True).start()

    watcher = loop.create_task(watch_exit_key())

    await stop_event.wait()
    watcher.cancel()
    return exit_code


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return asyncio.run(main(args))


if __name__ == "__main__":
    sys.exit(run())
