"""Power-module protocol: set-point commands, status polling and soft start."""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from psucan.canbus import CanBus, CanError

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = 1
MIN_ADDRESS = 1
MAX_ADDRESS = 60

SOFT_START_INITIAL_CURRENT = 10.0
SOFT_START_STEP_CURRENT = 10.0
DEFAULT_TARGET_VOLTAGE = 100.0
DEFAULT_TARGET_CURRENT = 6.0

RAMP_INTERVAL_MS = 100
QUERY_INTERVAL_MS = 100
RAMP_CURRENT_THRESHOLD = 1.0
ZERO_CURRENT_THRESHOLD = 0.1

ID_CMD_SET = 0x1907C080
ID_CMD_QUERY = 0x1907C080
ID_RESP_STATUS = 0x1807C080
ID_CMD_QUERY_IN = 0x1907A080
ID_RESP_INPUT = 0x1807A080

CMD_SET = 0x00
CMD_STATUS = 0x01
CMD_POWER = 0x02
CMD_INPUT = 0x31

POWER_ON = 0x55
POWER_OFF = 0xAA

Clock = Callable[[], int]


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


@dataclass
class PowerStatus:
    """Measured and requested values of the power module."""

    voltage_out: float = 0.0
    current_out: float = 0.0
    voltage_set: float = 0.0
    current_set: float = 0.0
    input_voltage: float = 0.0
    is_on: bool = False
    hw_running: bool = False
    is_soft_starting: bool = False
    set_cmd_success: bool = False
    power_cmd_success: bool = False
    new_input_voltage: bool = False
    last_update: int = 0


def encode_set_command(voltage: float, current: float) -> bytes:
    """Encode a CMD=0 frame: current in mA (24 bit) and voltage in mV (32 bit)."""
    if voltage < 0 or current < 0:
        raise ValueError("voltage and current must not be negative")
    milliamps = int(current * 1000) & 0xFFFFFFFF
    millivolts = int(voltage * 1000) & 0xFFFFFFFF
    return (
        bytes([CMD_SET])
        + (milliamps & 0xFFFFFF).to_bytes(3, "big")
        + millivolts.to_bytes(4, "big")
    )


class PowerProtocol:
    """Drives one power module over a CAN bus."""

    def __init__(self, bus: CanBus, address: int = DEFAULT_ADDRESS, clock: Clock | None = None) -> None:
        if not MIN_ADDRESS <= address <= MAX_ADDRESS:
            raise ValueError(f"address must be {MIN_ADDRESS}..{MAX_ADDRESS}, got {address}")
        self._bus = bus
        self._clock = clock or _monotonic_ms
        self.address = address
        self._status = PowerStatus()
        self._startup_check_done = False
        self._last_query_time = 0
        self._soft_start_active = False
        self._target_volts = 0.0
        self._target_amps = 0.0
        self._ramping_amps = 0.0
        self._last_ramp_time = 0
        self.reset()

    @property
    def status(self) -> PowerStatus:
        """A copy of the current status."""
        return dataclasses.replace(self._status)

    def reset(self) -> None:
        """Clear the status and return the targets to their defaults."""
        self._status = PowerStatus()
        self._target_volts = DEFAULT_TARGET_VOLTAGE
        self._target_amps = DEFAULT_TARGET_CURRENT
        self._status.voltage_set = self._target_volts
        self._status.current_set = self._target_amps
        self._startup_check_done = False

    def poll(self) -> None:
        """Handle received frames, advance the soft start and query the status."""
        while (frame := self._bus.receive()) is not None:
            self.handle_frame(frame.can_id, frame.data)

        now = self._clock()

        if self._status.is_on and self._soft_start_active:
            # Ramp only once output current shows the contactor has closed.
            if self._status.current_out > RAMP_CURRENT_THRESHOLD:
                if now - self._last_ramp_time >= RAMP_INTERVAL_MS:
                    self._last_ramp_time = now
                    self._ramping_amps += SOFT_START_STEP_CURRENT
                    if self._ramping_amps >= self._target_amps:
                        self._ramping_amps = self._target_amps
                        self._soft_start_active = False
                        self._status.is_soft_starting = False
                    self._send_set_command(self._target_volts, self._ramping_amps)
            else:
                self._last_ramp_time = now

        if now - self._last_query_time >= QUERY_INTERVAL_MS:
            self.query_status()
            self._last_query_time = now

    def set_output(self, voltage: float, current: float) -> None:
        """Set new targets; sent at once when running and not soft starting."""
        self._target_volts = voltage
        self._target_amps = current
        self._status.voltage_set = voltage
        self._status.current_set = current
        if self._status.is_on and not self._soft_start_active:
            self._send_set_command(self._target_volts, self._target_amps)

    def set_power(self, on: bool) -> None:
        """Switch the output; switching on starts the soft start."""
        payload = bytearray(8)
        payload[0] = CMD_POWER
        payload[7] = POWER_ON if on else POWER_OFF
        self._send(ID_CMD_SET + self.address, bytes(payload))

        self._status.is_on = on
        if on:
            self._soft_start_active = True
            self._status.is_soft_starting = True
            if self._target_amps <= ZERO_CURRENT_THRESHOLD:
                self._ramping_amps = 0.0
            else:
                self._ramping_amps = min(self._target_amps, SOFT_START_INITIAL_CURRENT)
            self._last_ramp_time = self._clock()
            self._send_set_command(self._target_volts, self._ramping_amps)
        else:
            self._soft_start_active = False
            self._status.is_soft_starting = False

    def query_status(self) -> None:
        """Ask the module for its output values (CMD=1)."""
        self._send(ID_CMD_QUERY + self.address, bytes([CMD_STATUS]) + bytes(7))

    def query_input_voltage(self) -> None:
        """Ask the module for its AC input voltage."""
        self._send(ID_CMD_QUERY_IN + self.address, bytes([CMD_INPUT]) + bytes(7))

    def clear_input_flag(self) -> None:
        """Mark the last input-voltage reading as reported."""
        self._status.new_input_voltage = False

    def handle_frame(self, can_id: int, data: bytes) -> None:
        """Update the status from one received frame."""
        data = bytes(data).ljust(8, b"\0")
        if can_id == ID_RESP_STATUS + self.address:
            command = data[0]
            if command == CMD_STATUS:
                raw_current = int.from_bytes(data[2:4], "big")
                raw_voltage = int.from_bytes(data[4:6], "big")
                self._status.current_out = raw_current / 10.0
                self._status.voltage_out = raw_voltage / 10.0

                hw_is_off = bool(data[7] & 0x01)
                self._status.hw_running = not hw_is_off

                if not self._startup_check_done:
                    if hw_is_off:
                        self.set_power(True)
                    else:
                        self._status.is_on = True
                        self._status.hw_running = True
                        self._soft_start_active = False
                        self._target_volts = self._status.voltage_out
                    self._startup_check_done = True

                self._status.last_update = self._clock()
            elif command == CMD_POWER:
                self._status.power_cmd_success = data[1] != 0
            else:
                self._status.set_cmd_success = data[0] != 0
        elif can_id == ID_RESP_INPUT + self.address:
            if data[0] == CMD_INPUT:
                raw_input = int.from_bytes(data[2:4], "big")
                self._status.input_voltage = raw_input / 32.0
                self._status.new_input_voltage = True

    def _send_set_command(self, voltage: float, current: float) -> None:
        self._send(ID_CMD_SET + self.address, encode_set_command(voltage, current))

    def _send(self, can_id: int, data: bytes) -> None:
        try:
            self._bus.send(can_id, data)
        except CanError as exc:
            logger.warning("CAN send failed: %s", exc)