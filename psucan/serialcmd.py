"""Text commands for the power module and periodic value reports."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable

from psucan.protocol import PowerProtocol

logger = logging.getLogger(__name__)

BAUD_RATE = 115_200
REPORT_INTERVAL_MS = 100

_FLOAT_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_float(text: str) -> float:
    """Read the leading number of ``text``; 0.0 when there is none."""
    match = _FLOAT_PREFIX.match(text)
    return float(match.group()) if match else 0.0


class SerialCommander:
    """Runs ``ON``, ``OFF``, ``SET:V=``, ``SET:I=`` and ``GET:AC`` lines and reports values."""

    def __init__(
        self,
        psu: PowerProtocol,
        write: Callable[[str], object],
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._psu = psu
        self._write = write
        self._clock = clock or (lambda: time.monotonic_ns() // 1_000_000)
        self._buffer: list[str] = []
        self._last_report_time = 0

    def feed(self, text: str | bytes) -> None:
        """Take received characters; every complete line is run as a command."""
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode("latin-1")
        for char in text:
            if char == "\n":
                command = "".join(self._buffer)
                self._buffer.clear()
                try:
                    self.process_command(command)
                except ValueError as exc:
                    logger.warning("rejected command %r: %s", command, exc)
            elif char != "\r":
                self._buffer.append(char)

    def process_command(self, command: str) -> str | None:
        """Run one command; return the acknowledgement written, or None if unknown."""
        cmd = command.upper().strip()
        psu = self._psu
        if cmd == "ON":
            psu.set_power(True)
            reply = "CMD_ACK:ON\r\n"
        elif cmd == "OFF":
            psu.set_power(False)
            reply = "CMD_ACK:OFF\r\n"
        elif cmd.startswith(("SET:V=", "SET:I=")):
            value = parse_float(cmd[6:])
            if value < 0:
                raise ValueError("value must not be negative")
            if cmd[4] == "V":
                psu.set_output(value, psu.status.current_set)
            else:
                psu.set_output(psu.status.voltage_set, value)
            reply = f"CMD_ACK:SET_{cmd[4]}:{value:.1f}\n"
        elif cmd == "GET:AC":
            # The reading is reported by poll() once the module answers.
            psu.query_input_voltage()
            reply = "CMD_ACK:QUERY_AC\r\n"
        else:
            return None
        self._write(reply)
        return reply

    def poll(self) -> None:
        """Write the periodic output report and any new input-voltage reading."""
        status = self._psu.status
        if self._clock() - self._last_report_time >= REPORT_INTERVAL_MS:
            self._write(f"V={status.voltage_out:.1f},I={status.current_out:.1f}\r\n")
            self._last_report_time = self._clock()
        if status.new_input_voltage:
            self._write(f"AC={status.input_voltage:.1f}\r\n")
            self._psu.clear_input_flag()