# psucan

`psucan` drives a rectifier power supply module over a CAN bus. The module is
addressed by a number from 1 to 60 and uses 29-bit extended frames at
125 kbit/s. It is controlled by three commands: set output (voltage and
current limit), switch power on or off, and query status. A separate query
reads the AC input voltage.

The package has these modules:

- **`psucan.canbus`**: the bus. `CanFrame` holds one frame and checks its
  identifier and length (at most 8 data bytes). `CanBus` is the interface the
  rest of the package uses. `MemoryBus` is an in-process bus for tests and
  simulation: frames that are sent are recorded in its `sent` list, and
  `inject` queues a frame as if the supply had sent it. `SocketCanBus` uses a
  Linux SocketCAN interface such as `can0`. It raises `CanError` when the
  interface cannot be opened, read or written.
- **`psucan.protocol`**: `PowerProtocol` keeps a `PowerStatus` up to date
  from the supply's replies and sends commands. `encode_set_command` builds the
  8-byte payload of a set-output command: current in mA (24 bit) and voltage
  in mV (32 bit). It raises `ValueError` for negative values.
- **`psucan.serialcmd`**: `SerialCommander`, a line-based text interface that
  another controller can drive over a serial link.
- **`psucan.ui`**: `AppUI`, the logic of a three-button front panel and the
  text of its screen, working in the modes listed by `UIMode`.
- **`psucan.app`**: the `psucan` command, and `run`, the service loop that it
  uses.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Soft start

When the output is switched on, the current limit does not go straight to its
target. It starts at 10 A, or at the target if that is lower (or at 0 A if the
target is 0.1 A or less). It holds there until the supply reports more than
1 A of output current, which shows that its output contactor has closed. From
then on, the limit rises by 10 A every 100 ms until it reaches the target.
Changes to the set point while the ramp is running are stored and taken up by
the ramp. Once the ramp is done, they are sent at once.

At start-up, the controller looks at the first status reply. If the supply is
off, the controller switches it on with a soft start. If the supply is
already running, the controller takes it over as it is and keeps its present
output voltage as the target.

The default set point is 100 V and 6 A. `reset` goes back to it and repeats
the start-up check.

## Using the protocol

```python
import time

from psucan.canbus import MemoryBus
from psucan.protocol import PowerProtocol

bus = MemoryBus()
psu = PowerProtocol(bus, 1)

psu.set_output(120.0, 15.0)
psu.set_power(True)

while True:
    psu.poll()      # read replies, advance the soft start, query status every 100 ms
    time.sleep(0.01)
```

The optional `clock` argument of `PowerProtocol` is a function that returns
milliseconds as an integer. By default, it is based on `time.monotonic_ns`.

On real hardware, use `SocketCanBus("can0")` in place of `MemoryBus()`, and
call `close()` on it when you are done. `PowerProtocol` logs a failed send
and does not raise an error for it.

`poll` must be called often. It handles every frame waiting on the bus,
advances the soft start, and sends a status query every 100 ms. The `status`
property returns a copy of the current `PowerStatus`. `query_input_voltage`
asks for the AC input voltage. When the answer arrives,
`status.new_input_voltage` stays true until `clear_input_flag` is called.
`handle_frame` takes one received frame directly.

## Serial commands

`SerialCommander(psu, write)` gets text through `feed`, as `str` or `bytes`.
A line ends at a newline, and carriage returns are ignored. Commands are not
case-sensitive, and spaces around them are ignored:

| Command     | Effect                                   | Reply                 |
|-------------|------------------------------------------|-----------------------|
| `ON`        | switch output on (with soft start)       | `CMD_ACK:ON`          |
| `OFF`       | switch output off                        | `CMD_ACK:OFF`         |
| `SET:V=<v>` | set voltage, keep current limit          | `CMD_ACK:SET_V:<v>`   |
| `SET:I=<i>` | set current limit, keep voltage          | `CMD_ACK:SET_I:<i>`   |
| `GET:AC`    | query AC input voltage                   | `CMD_ACK:QUERY_AC`    |

Replies are passed to `write`. `SET` replies end in a newline, and the others
end in a carriage return and a newline. The number after `=` is read as far as
it goes, and text that does not start with a number counts as 0.
`process_command` runs one command and returns the reply, or `None` for an
unknown command. It raises `ValueError` for a negative value. `feed` logs such
lines and goes on.

Every 100 ms, `poll` writes a report of the form `V=<volts>,I=<amps>`. When a
new input voltage has arrived, it also writes `AC=<volts>` and clears the
flag.

## Front panel

`AppUI.handle_buttons(select, up, down)` takes the state of the three buttons,
where `True` means the button is held down. A press counts only when the
button goes from released to pressed. For 150 ms after a press, no button
input is taken. SELECT goes from `UIMode.MONITOR` to `UIMode.SET_VOLTAGE`,
then to `UIMode.SET_CURRENT`, and back. In the setting modes, UP and DOWN
change the value by 1 V or 1 A, and it never goes below zero. In monitoring
mode, UP switches the output on and DOWN switches it off.

`render` returns the screen as five text lines:

- the address, `ACK` when the last set command was acknowledged, and
  `SOFT`, `ON` or `OFF`
- the measured voltage
- the measured current
- a rule
- a footer for the current mode

## Command line

```
psucan --channel can0 --address 1 --serial /dev/ttyUSB0 --display
```

The command opens the SocketCAN interface. If `--serial` is given, it also
opens that serial port, at `--baud` (default 115200). It waits
`--startup-delay` seconds (default 1.5), then runs the controller loop until
it is interrupted. Commands from the serial port are run as described above,
and the reports are written back to the port. With `--display`, the screen
text is printed each time it changes. `psucan --help` lists the options.

## What it does not do

The package does not drive a physical display or read physical buttons.
`AppUI` only works out the screen text and reacts to the button states it is
given. The `psucan` command takes no button input and can only print the
screen. The only real bus supported is Linux SocketCAN.