import pytest

from psucan.canbus import MemoryBus
from psucan.protocol import (
    CMD_INPUT,
    DEFAULT_TARGET_CURRENT,
    DEFAULT_TARGET_VOLTAGE,
    ID_CMD_QUERY_IN,
    ID_RESP_INPUT,
    ID_RESP_STATUS,
    PowerProtocol,
)
from psucan.serialcmd import SerialCommander, parse_float


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def setup():
    bus = MemoryBus()
    clock = FakeClock()
    psu = PowerProtocol(bus, 1, clock)
    output = []
    commander = SerialCommander(psu, output.append, clock)
    return bus, clock, psu, output, commander


def test_on_command(setup):
    _, _, psu, output, commander = setup
    commander.feed("ON\r\n")
    assert psu.status.is_on is True
    assert output == ["CMD_ACK:ON\r\n"]


def test_off_command_is_case_insensitive_and_trimmed(setup):
    _, _, psu, output, commander = setup
    commander.feed("ON\n")
    commander.feed("  off \r\n")
    assert psu.status.is_on is False
    assert output[-1] == "CMD_ACK:OFF\r\n"


def test_set_voltage_split_across_feeds(setup):
    _, _, psu, output, commander = setup
    commander.feed("SET:V")
    assert output == []
    commander.feed(b"=48.5\n")
    assert psu.status.voltage_set == 48.5
    assert psu.status.current_set == DEFAULT_TARGET_CURRENT
    assert output == ["CMD_ACK:SET_V:48.5\n"]


def test_set_current_keeps_voltage(setup):
    _, _, psu, output, commander = setup
    commander.feed("set:i=20\n")
    assert psu.status.current_set == 20.0
    assert psu.status.voltage_set == DEFAULT_TARGET_VOLTAGE
    assert output[-1].startswith("CMD_ACK:SET_I:")


def test_set_with_no_number_gives_zero(setup):
    _, _, psu, _, commander = setup
    commander.process_command("SET:V=abc")
    assert psu.status.voltage_set == 0.0


def test_negative_value_rejected(setup):
    _, _, psu, output, commander = setup
    with pytest.raises(ValueError):
        commander.process_command("SET:V=-5")
    commander.feed("SET:I=-1\n")
    assert output == []
    assert psu.status.current_set == DEFAULT_TARGET_CURRENT


def test_get_ac_sends_query(setup):
    bus, _, _, output, commander = setup
    reply = commander.process_command("GET:AC")
    assert reply == "CMD_ACK:QUERY_AC\r\n"
    assert output == [reply]
    frame = bus.sent[-1]
    assert frame.can_id == ID_CMD_QUERY_IN + 1
    assert frame.data[0] == CMD_INPUT


def test_unknown_command_ignored(setup):
    bus, _, _, output, commander = setup
    assert commander.process_command("HELLO") is None
    assert output == []
    assert bus.sent == []


def test_periodic_report(setup):
    _, clock, psu, output, commander = setup
    commander.poll()
    assert output == []
    psu.handle_frame(ID_RESP_STATUS + 1, bytes([0x01, 0, 0, 123, 0x01, 0xE0, 0, 0]))
    clock.now = 100
    commander.poll()
    commander.poll()
    assert output == ["V=48.0,I=12.3\r\n"]


def test_input_voltage_reported_once(setup):
    _, clock, psu, output, commander = setup
    psu.handle_frame(ID_RESP_INPUT + 1, bytes([0x31, 0, 0x1C, 0xC0, 0, 0, 0, 0]))
    commander.poll()
    commander.poll()
    ac_lines = [line for line in output if line.startswith("AC=")]
    assert ac_lines == ["AC=230.0\r\n"]
    assert psu.status.new_input_voltage is False


@pytest.mark.parametrize(
    "text, expected",
    [("12.5V", 12.5), ("  -3", -3.0), ("x", 0.0), (".5", 0.5), ("1E2", 100.0)],
)
def test_parse_float(text, expected):
    assert parse_float(text) == expected