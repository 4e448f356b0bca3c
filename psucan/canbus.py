"""CAN frames, an in-memory bus and a SocketCAN bus."""

from __future__ import annotations

import socket
import struct
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass

BITRATE = 125_000
MAX_DATA_LENGTH = 8
STANDARD_ID_MASK = 0x7FF
EXTENDED_ID_MASK = 0x1FFFFFFF
CAN_EFF_FLAG = 0x80000000
SEND_TIMEOUT = 0.010

_FRAME = struct.Struct("=IB3x8s")


class CanError(OSError):
    """Raised when the bus cannot be opened or a frame cannot be sent."""


@dataclass(frozen=True)
class CanFrame:
    """A CAN data frame; extended (29-bit) identifiers by default."""

    can_id: int
    data: bytes = b""
    extended: bool = True

    def __post_init__(self) -> None:
        data = bytes(self.data)
        if len(data) > MAX_DATA_LENGTH:
            raise ValueError(f"CAN frame carries at most {MAX_DATA_LENGTH} bytes, got {len(data)}")
        limit = EXTENDED_ID_MASK if self.extended else STANDARD_ID_MASK
        if not 0 <= self.can_id <= limit:
            raise ValueError(f"CAN identifier {self.can_id:#x} out of range")
        object.__setattr__(self, "data", data)


class CanBus(ABC):
    """A bus that sends extended frames and hands back received ones."""

    @abstractmethod
    def send(self, can_id: int, data: bytes) -> None:
        """Send an extended frame; raise CanError if it cannot go out."""

    @abstractmethod
    def receive(self) -> CanFrame | None:
        """Return the next waiting frame, or None if there is none."""


class MemoryBus(CanBus):
    """A bus in memory: sent frames are recorded, incoming ones injected."""

    def __init__(self) -> None:
        self.sent: list[CanFrame] = []
        self._incoming: deque[CanFrame] = deque()

    def send(self, can_id: int, data: bytes) -> None:
        self.sent.append(CanFrame(can_id, data))

    def receive(self) -> CanFrame | None:
        return self._incoming.popleft() if self._incoming else None

    def inject(self, can_id: int, data: bytes) -> CanFrame:
        """Queue a frame as if it had arrived from the bus."""
        frame = CanFrame(can_id, data)
        self._incoming.append(frame)
        return frame


class SocketCanBus(CanBus):
    """A SocketCAN raw socket bound to one interface."""

    def __init__(self, channel: str) -> None:
        self.channel = channel
        try:
            self._sock = socket.socket(socket.AF_CAN, socket.SOCK_RAW, socket.CAN_RAW)
        except (AttributeError, OSError) as exc:
            raise CanError(f"SocketCAN is not available: {exc}") from exc
        try:
            self._sock.bind((channel,))
            self._sock.settimeout(SEND_TIMEOUT)
        except OSError as exc:
            self._sock.close()
            raise CanError(f"cannot open CAN interface {channel!r}: {exc}") from exc

    def send(self, can_id: int, data: bytes) -> None:
        frame = CanFrame(can_id, data)
        raw = _FRAME.pack(can_id | CAN_EFF_FLAG, len(frame.data), frame.data.ljust(MAX_DATA_LENGTH, b"\0"))
        try:
            self._sock.send(raw)
        except OSError as exc:
            raise CanError(f"cannot send frame {can_id:#x}: {exc}") from exc

    def receive(self) -> CanFrame | None:
        try:
            raw = self._sock.recv(_FRAME.size, socket.MSG_DONTWAIT)
        except (BlockingIOError, InterruptedError, socket.timeout):
            return None
        except OSError as exc:
            raise CanError(f"cannot read from {self.channel!r}: {exc}") from exc
        can_id, dlc, payload = _FRAME.unpack(raw[: _FRAME.size].ljust(_FRAME.size, b"\0"))
        extended = bool(can_id & CAN_EFF_FLAG)
        mask = EXTENDED_ID_MASK if extended else STANDARD_ID_MASK
        return CanFrame(can_id & mask, payload[: min(dlc, MAX_DATA_LENGTH)], extended)

    def close(self) -> None:
        self._sock.close()