"""Front-panel logic: three buttons to change mode and set points, and a text screen."""

from __future__ import annotations

import time
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from psucan.protocol import DEFAULT_ADDRESS, PowerProtocol

DEBOUNCE_MS = 150
VOLTAGE_STEP = 1.0
CURRENT_STEP = 1.0
SCREEN_COLUMNS = 21

Clock = Callable[[], int]


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


def _print_float(value: float, digits: int) -> str:
    """Format with a fixed number of decimals, rounding halves away from zero."""
    quantum = Decimal(1).scaleb(-digits)
    return f"{Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP):f}"


class UIMode(Enum):
    """What the front panel is currently adjusting."""

    MONITOR = "monitor"
    SET_VOLTAGE = "set_voltage"
    SET_CURRENT = "set_current"

    def next(self) -> UIMode:
        order = list(UIMode)
        return order[(order.index(self) + 1) % len(order)]


class AppUI:
    """Button handling and screen contents for one power module."""

    def __init__(self, psu: PowerProtocol, clock: Clock | None = None, address: int = DEFAULT_ADDRESS) -> None:
        self._psu = psu
        self._clock = clock or _monotonic_ms
        self.address = address
        self.mode = UIMode.MONITOR
        self._last_pressed = (False, False, False)
        self._last_debounce = 0

    def handle_buttons(self, select: bool = False, up: bool = False, down: bool = False) -> None:
        """Act on button presses; True means the button is held down."""
        now = self._clock()
        if now - self._last_debounce < DEBOUNCE_MS:
            return

        status = self._psu.status
        voltage = status.voltage_set
        current = status.current_set
        changed = False
        was_select, was_up, was_down = self._last_pressed

        if select and not was_select:
            self._last_debounce = now
            self.mode = self.mode.next()

        if up and not was_up:
            self._last_debounce = now
            if self.mode is UIMode.SET_VOLTAGE:
                voltage += VOLTAGE_STEP
                changed = True
            elif self.mode is UIMode.SET_CURRENT:
                current += CURRENT_STEP
                changed = True
            else:
                self._psu.set_power(True)

        if down and not was_down:
            self._last_debounce = now
            if self.mode is UIMode.SET_VOLTAGE:
                voltage -= VOLTAGE_STEP
                changed = True
            elif self.mode is UIMode.SET_CURRENT:
                current -= CURRENT_STEP
                changed = True
            else:
                self._psu.set_power(False)

        if changed:
            self._psu.set_output(max(voltage, 0.0), max(current, 0.0))

        self._last_pressed = (select, up, down)

    def render(self) -> list[str]:
        """Return the screen as text lines: header, output values, rule and footer."""
        status = self._psu.status

        if status.is_soft_starting:
            state = "SOFT"
        else:
            state = "ON" if status.is_on else "OFF"
        ack = "ACK" if status.set_cmd_success else ""
        header = f"Addr:{self.address}".ljust(8) + ack.ljust(7) + state

        if self.mode is UIMode.MONITOR:
            footer = (
                f"Set: {_print_float(status.voltage_set, 0)}V "
                f"{_print_float(status.current_set, 1)}A"
            )
        elif self.mode is UIMode.SET_VOLTAGE:
            footer = f">> Set Volt: {_print_float(status.voltage_set, 1)}"
        else:
            footer = f">> Set Curr: {_print_float(status.current_set, 1)}"

        return [
            header,
            f"V: {status.voltage_out:5.1f} V",
            f"I: {status.current_out:5.1f} A",
            "-" * SCREEN_COLUMNS,
            footer,
        ]