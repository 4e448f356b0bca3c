import pytest

from psucan.app import build_parser, main, run
from psucan.canbus import MemoryBus
from psucan.protocol import CMD_STATUS, ID_CMD_QUERY, PowerProtocol
from psucan.serialcmd import SerialCommander
from psucan.ui import AppUI


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def setup():
    bus = MemoryBus()
    clock = FakeClock(100)
    psu = PowerProtocol(bus, 1, clock)
    output = []
    commander = SerialCommander(psu, output.append, clock)
    ui = AppUI(psu, clock, 1)
    return bus, psu, commander, ui, output


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.channel == "can0"
    assert args.address == 1
    assert args.baud == 115200
    assert args.serial is None
    assert args.display is False


@pytest.mark.parametrize("address", ["0", "61", "x"])
def test_parser_rejects_bad_address(address):
    with pytest.raises(SystemExit) as info:
        build_parser().parse_args(["--address", address])
    assert info.value.code == 2


def test_run_one_cycle(setup):
    bus, _, commander, ui, output = setup
    screen = run(bus and setup[1], commander, ui, 1)
    query = [f for f in bus.sent if f.can_id == ID_CMD_QUERY + 1 and f.data[0] == CMD_STATUS]
    assert len(query) == 1
    assert len(output) == 1
    assert output[0].startswith("V=")
    assert screen[0].startswith("Addr:1")


def test_run_without_ui_returns_none(setup):
    bus, psu, _, _, _ = setup
    assert run(psu, None, None, 2) is None
    assert len(bus.sent) == 1


def test_run_zero_cycles_does_nothing(setup):
    bus, psu, commander, ui, output = setup
    assert run(psu, commander, ui, 0) is None
    assert bus.sent == []
    assert output == []


def test_run_negative_cycles(setup):
    _, psu, _, _, _ = setup
    with pytest.raises(ValueError):
        run(psu, None, None, -1)


def test_main_fails_without_can_interface():
    assert main(["--channel", "nonexistent0", "--startup-delay", "0"]) == 1