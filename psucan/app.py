"""Command-line entry: drives a power module over SocketCAN."""

from __future__ import annotations

import argparse
import itertools
import sys
import time

import serial

from psucan.canbus import CanError, SocketCanBus
from psucan.protocol import DEFAULT_ADDRESS, MAX_ADDRESS, MIN_ADDRESS, PowerProtocol
from psucan.serialcmd import BAUD_RATE, SerialCommander
from psucan.ui import AppUI

STARTUP_DELAY = 1.5
LOOP_INTERVAL = 0.005


def _address(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}") from None
    if not MIN_ADDRESS <= value <= MAX_ADDRESS:
        raise argparse.ArgumentTypeError(f"address must be {MIN_ADDRESS}..{MAX_ADDRESS}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser."""
    parser = argparse.ArgumentParser(prog="psucan", description="Control a CAN power module.")
    parser.add_argument("--channel", default="can0", help="SocketCAN interface")
    parser.add_argument("--address", type=_address, default=DEFAULT_ADDRESS, help="module address")
    parser.add_argument("--serial", metavar="PORT", help="serial port that takes text commands")
    parser.add_argument("--baud", type=int, default=BAUD_RATE, help="serial baud rate")
    parser.add_argument("--display", action="store_true", help="print the panel screen when it changes")
    parser.add_argument("--startup-delay", type=float, default=STARTUP_DELAY,
                        help="seconds to wait before talking to the module")
    return parser


def run(
    psu: PowerProtocol,
    commander: SerialCommander | None = None,
    ui: AppUI | None = None,
    cycles: int | None = None,
) -> list[str] | None:
    """Run the service loop ``cycles`` times (for ever if None); return the last screen."""
    if cycles is not None and cycles < 0:
        raise ValueError("cycles must not be negative")
    screen = None
    for _ in itertools.count() if cycles is None else range(cycles):
        psu.poll()
        if ui is not None:
            screen = ui.render()
        if commander is not None:
            commander.poll()
    return screen


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        bus = SocketCanBus(args.channel)
    except CanError as exc:
        print(f"Error: CAN init failed: {exc}", file=sys.stderr)
        return 1

    port = None
    try:
        if args.serial:
            try:
                port = serial.Serial(args.serial, args.baud, timeout=0)
            except serial.SerialException as exc:
                print(f"Error: cannot open {args.serial}: {exc}", file=sys.stderr)
                return 1

        time.sleep(max(args.startup_delay, 0.0))
        psu = PowerProtocol(bus, args.address)
        commander = None
        if port is not None:
            commander = SerialCommander(psu, lambda text: port.write(text.encode("ascii")))
        ui = AppUI(psu, address=args.address) if args.display else None

        last_screen = None
        while True:
            if commander is not None and port.in_waiting:
                commander.feed(port.read(port.in_waiting))
            screen = run(psu, commander, ui, 1)
            if screen is not None and screen != last_screen:
                print("\n".join(screen) + "\n", flush=True)
                last_screen = screen
            time.sleep(LOOP_INTERVAL)
    except KeyboardInterrupt:
        return 0
    finally:
        if port is not None:
            port.close()
        bus.close()