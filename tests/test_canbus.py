import pytest

from psucan.canbus import (
    CanError,
    CanFrame,
    MemoryBus,
    SocketCanBus,
)


def test_frame_converts_data_to_bytes():
    frame = CanFrame(0x1907C080, [1, 2, 3])
    assert frame.data == bytes([1, 2, 3])
    assert frame.extended is True


def test_frame_rejects_long_payload():
    with pytest.raises(ValueError):
        CanFrame(0x100, bytes(9))


@pytest.mark.parametrize("can_id", [-1, 0x20000000])
def test_frame_rejects_bad_extended_id(can_id):
    with pytest.raises(ValueError):
        CanFrame(can_id, b"")


def test_frame_rejects_large_standard_id():
    with pytest.raises(ValueError):
        CanFrame(0x800, b"", extended=False)


def test_memory_bus_records_sent_frames():
    bus = MemoryBus()
    bus.send(0x1907C081, bytes([2, 0, 0, 0, 0, 0, 0, 0x55]))
    assert bus.sent == [CanFrame(0x1907C081, bytes([2, 0, 0, 0, 0, 0, 0, 0x55]))]


def test_memory_bus_receive_empty_returns_none():
    assert MemoryBus().receive() is None


def test_memory_bus_receive_is_fifo():
    bus = MemoryBus()
    first = bus.inject(0x1807C081, b"\x01")
    second = bus.inject(0x1807A081, b"\x31")
    assert bus.receive() == first
    assert bus.receive() == second
    assert bus.receive() is None


def test_memory_bus_send_validates():
    bus = MemoryBus()
    with pytest.raises(ValueError):
        bus.send(0x100, bytes(10))
    assert bus.sent == []


def test_socketcan_missing_interface_raises():
    with pytest.raises(CanError):
        SocketCanBus("psucan-none0")