#!/usr/bin/env python3
"""
Interactive console for a Keysight 33500B stimulation function generator.

Use to put the generator into a stimulation mode, load or upload waveforms,
and inspect its memory and error queue without writing a script.
"""

import ast
import cmd
import os
import shlex
import sys
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from stim_fgen import ColorPrinter, ConfigurationError, Keysight_33500B, MockFunctionGenerator, StimFgenError


RESOURCE_ENV = "STIM_FGEN_RESOURCE"


def parse_value(text):
    """Turn '10', '0.5', '(1, 2)' into numbers/tuples; anything else stays a string."""
    try:
        return ast.literal_eval(text)
    except (ValueError, SyntaxError):
        return text


def split_options(tokens) -> Tuple[List[str], Dict[str, Any]]:
    """Separate positional tokens from key=value options."""
    positional = []
    options = {}
    for token in tokens:
        if "=" in token:
            key, value = token.split("=", 1)
            options[key.strip()] = parse_value(value.strip())
        else:
            positional.append(token)
    return positional, options


def ask_confirmation(channel, volts):
    answer = input(f"CH{channel}: {volts} V is above the safety threshold. Continue? y | [n] ")
    return answer.strip().lower() == "y"


class FunctionGeneratorRepl(cmd.Cmd):
    intro = "Keysight 33500B stimulation console. Type 'help' for commands."
    prompt = "fgen> "

    def __init__(self, session: Keysight_33500B, confirm=ask_confirmation):
        super().__init__()
        self.fgen = session
        self.confirm = confirm

    # --------------------------
    # Core helpers
    # --------------------------
    def _parse_args(self, arg):
        try:
            return shlex.split(arg, posix=False)
        except ValueError as exc:
            ColorPrinter.error(f"Parse error: {exc}")
            return None

    def _call(self, fn, *args, **kwargs):
        """Run a driver call; configuration mistakes are reported, not fatal."""
        try:
            return fn(*args, **kwargs)
        except ConfigurationError as exc:
            ColorPrinter.error(f"Configuration error: {exc}")
        except StimFgenError as exc:
            ColorPrinter.error(str(exc))
        return None

    def _report(self, had_error, label):
        if had_error is False:
            ColorPrinter.success(label)

    def _channels(self, positional):
        if not positional or positional[0].lower() == "both":
            return (1, 2)
        return tuple(int(tok.lower().replace("ch", "")) for tok in positional)

    def _print_usage(self, lines):
        for line in lines:
            print(line)

    def onecmd(self, line):
        if ";" in line:
            for chunk in line.split(";"):
                if chunk.strip() and super().onecmd(chunk.strip()):
                    return True
            return False
        return super().onecmd(line)

    def emptyline(self):
        pass

    # --------------------------
    # Output control
    # --------------------------
    def do_go(self, arg):
        "go [1|2|both]: enable outputs (default both)"
        tokens = self._parse_args(arg)
        if tokens is None:
            return
        try:
            channels = self._channels(tokens)
        except ValueError:
            ColorPrinter.error("Channel must be '1', '2', 'ch1', 'ch2', or 'both'")
            return
        self._report(self._call(self.fgen.go, channels=channels), f"Outputs {channels} on")

    def do_stop(self, arg):
        "stop [1|2|both]: disable outputs and send a software trigger"
        tokens = self._parse_args(arg)
        if tokens is None:
            return
        try:
            channels = self._channels(tokens)
        except ValueError:
            ColorPrinter.error("Channel must be '1', '2', 'ch1', 'ch2', or 'both'")
            return
        self._report(self._call(self.fgen.stop, channels=channels), f"Outputs {channels} off")

    def do_reset(self, arg):
        "reset: sine 1MHz 0.1Vpp on both channels, outputs off, volatile memory cleared"
        self._report(self._call(self.fgen.reset), "Reset")

    def do_fire(self, arg):
        "fire: send a software (*TRG) trigger"
        self._report(self._call(self.fgen.send_trigger), "Triggered")

    # --------------------------
    # Stimulation modes
    # --------------------------
    def do_pulse(self, arg):
        "pulse k=v ...: duty_cycle= duration= repetition_frequency= (two of three) channel= amplitude="
        tokens = self._parse_args(arg)
        if tokens is None:
            return
        if not tokens:
            self._print_usage(
                [
                    "pulse duty_cycle=<%> duration=<s> repetition_frequency=<Hz> [channel=2] [amplitude=0.6]",
                    "  - two of duty_cycle, duration, repetition_frequency are required",
                    "  - example: pulse duty_cycle=10 repetition_frequency=100",
                ]
            )
            return
        _, options = split_options(tokens)
        self._report(self._call(self.fgen.configure_pulse, **options), "Pulse configured")

    def do_mod(self, arg):
        "mod [channel=2] [depth=%]: AM the other channel from this one"
        tokens = self._parse_args(arg)
        if tokens is None:
            return
        _, options = split_options(tokens)
        self._report(self._call(self.fgen.configure_modulation, **options), "Modulation configured")

    def do_trigger(self, arg):
        "trigger [source=EXT|BUS|TIM] [channels=(1,2)] [trig_timer=1]: one cycle per trigger"
        tokens = self._parse_args(arg)
        if tokens is None:
            return
        _, options = split_options(tokens)
        self._report(self._call(self.fgen.configure_trigger, **options), "Burst armed")

    def do_volt(self, arg):
        "volt <1|2> <Vpp>: change amplitude; both outputs are switched off"
        tokens = self._parse_args(arg)
        if not tokens or len(tokens) < 2:
            self._print_usage(["volt <1|2> <Vpp>", "  - example: volt 1 0.5"])
            return
        try:
            channel, volts = int(tokens[0]), float(tokens[1])
        except ValueError:
            ColorPrinter.error("Usage: volt <1|2> <Vpp>")
            return
        result = self._call(self.fgen.change_voltage, channel, volts, confirm=self.confirm)
        if result is None:
            return
        if result.applied:
            self._report(result.had_error, f"CH{channel} amplitude {volts} Vpp")
        else:
            ColorPrinter.warning("Voltage unchanged.")

    # --------------------------
    # Waveforms and memory
    # --------------------------
    def do_load(self, arg):
        "load <name> [path=USB:\\] [channel=1] [sample_rate=]: load a stored waveform"
        tokens = self._parse_args(arg)
        if not tokens:
            self._print_usage(["load <name> [path=] [channel=] [sample_rate=]"])
            return
        positional, options = split_options(tokens)
        if not positional:
            ColorPrinter.warning("A waveform name is required.")
            return
        name = positional[0]
        self._report(self._call(self.fgen.load_waveform, name, **options), f"Loaded {name}")

    def do_state(self, arg):
        "state <name> [path=USB:\\STATES\\]: recall a stored instrument state"
        tokens = self._parse_args(arg)
        if not tokens:
            self._print_usage(["state <name> [path=]"])
            return
        positional, options = split_options(tokens)
        if not positional:
            ColorPrinter.warning("A state name is required.")
            return
        self._report(self._call(self.fgen.load_state, positional[0], **options), f"State {positional[0]} loaded")

    def do_upload(self, arg):
        "upload <file> <name> <rate> [channel=1] [path=USB:\\] [amplitude=0.1]: upload samples from a text file"
        tokens = self._parse_args(arg)
        positional, options = split_options(tokens or [])
        if len(positional) < 3:
            self._print_usage(
                [
                    "upload <file> <name> <rate> [channel=] [path=] [amplitude=]",
                    "  - file: one sample per line (or comma separated)",
                    "  - example: upload burst.csv BURST1 1e6 channel=1",
                ]
            )
            return
        filename, name, rate = positional[0], positional[1], positional[2]
        try:
            samples = np.loadtxt(filename, delimiter="," if filename.endswith(".csv") else None, ndmin=1)
            rate = float(rate)
        except (OSError, ValueError) as exc:
            ColorPrinter.error(f"Could not read {filename}: {exc}")
            return
        self._report(
            self._call(self.fgen.upload_waveform, samples.ravel(), name, rate, **options),
            f"Uploaded {name} ({samples.size} points)",
        )

    def do_clear(self, arg):
        "clear [channel]: clear volatile waveform memory (default channel 1)"
        tokens = self._parse_args(arg)
        if tokens is None:
            return
        options = {}
        if tokens:
            try:
                options["channel"] = int(tokens[0].lower().replace("ch", ""))
            except ValueError:
                ColorPrinter.error("Usage: clear [1|2|ch1|ch2]")
                return
        self._report(self._call(self.fgen.clear_memory, **options), "Volatile memory cleared")

    def do_mem(self, arg):
        "mem <path+name>: is the waveform in volatile memory?"
        if not arg.strip():
            self._print_usage(["mem <path+name>", "  - example: mem USB:\\PULSE1"])
            return
        found = self._call(self.fgen.check_memory, arg.strip())
        if found is not None:
            print("yes" if found else "no")

    def do_list(self, arg):
        "list <folder>: stored waveforms in a folder"
        folder = arg.strip() or "USB:\\"
        names = self._call(self.fgen.waveforms_available, folder)
        if names is None:
            return
        if not names:
            ColorPrinter.warning(f"No waveforms in {folder}")
        for name in sorted(names):
            print(f"  {name}")

    def do_cfac(self, arg):
        "cfac <name> [path=USB:\\]: crest factor of a loaded waveform"
        self._attribute(self.fgen.crest_factor, arg)

    def do_ptp(self, arg):
        "ptp <name> [path=USB:\\]: peak-to-peak of a loaded waveform"
        self._attribute(self.fgen.peak_to_peak, arg)

    def _attribute(self, fn, arg):
        tokens = self._parse_args(arg)
        positional, options = split_options(tokens or [])
        if not positional:
            ColorPrinter.warning("A waveform name is required.")
            return
        result = self._call(fn, positional[0], **options)
        if result is not None and result.resident:
            print(f"{result.value:g}")

    # --------------------------
    # Diagnostics
    # --------------------------
    def do_errors(self, arg):
        "errors: drain and print the instrument error queue"
        had_error = self._call(self.fgen.check_errors)
        if had_error:
            for record in self.fgen.errors.last_errors:
                ColorPrinter.error(str(record))
        elif had_error is False:
            ColorPrinter.success("No errors")

    def do_idn(self, arg):
        "idn: query *IDN?"
        identity = self._call(self.fgen.identify)
        if identity is not None:
            print(identity)

    def do_raw(self, arg):
        "raw <scpi>: send raw SCPI; if it ends with ?, print the reply"
        text = arg.strip()
        if not text:
            self._print_usage(["raw <scpi>", "  - example: raw SOUR1:FREQ?"])
            return
        try:
            self.fgen.transport.write(text)
            if text.endswith("?"):
                print(self.fgen.transport.read_line())
        except StimFgenError as exc:
            ColorPrinter.error(str(exc))

    def do_status(self, arg):
        "status: what the session last set on each channel"
        for number, channel in self.fgen.channels.items():
            state = "ON" if channel.enabled else "OFF"
            line = f"CH{number}: {state:3} {channel.function.name:9} {channel.amplitude:g} Vpp burst={channel.burst.value}"
            if channel.waveform:
                line += f" waveform={channel.waveform}"
            print(line)
        resident = sorted(self.fgen.resident_waveforms)
        print(f"Resident: {', '.join(resident) if resident else '-'}")

    def do_exit(self, arg):
        "exit: quit the console"
        return True

    def do_quit(self, arg):
        "quit: quit the console"
        return True

    def do_EOF(self, arg):
        print()
        return True


def parse_argv(argv) -> Dict[str, Optional[str]]:
    settings = {"resource": os.environ.get(RESOURCE_ENV), "log": None, "mock": False}
    for arg in argv:
        if arg == "--mock":
            settings["mock"] = True
        elif arg.startswith("--resource="):
            settings["resource"] = arg.split("=", 1)[1]
        elif arg.startswith("--log="):
            settings["log"] = arg.split("=", 1)[1]
        else:
            raise SystemExit(f"Unknown argument '{arg}'. Use --resource=<VISA>, --log=<file>, --mock")
    return settings


def main(argv=None):
    settings = parse_argv(sys.argv[1:] if argv is None else argv)
    if settings["mock"]:
        session = Keysight_33500B(transport=MockFunctionGenerator(), log_path=settings["log"])
    elif settings["resource"]:
        session = Keysight_33500B(settings["resource"], log_path=settings["log"])
    else:
        ColorPrinter.error(f"No instrument given. Use --resource=<VISA>, set {RESOURCE_ENV}, or --mock")
        return 1

    try:
        with session:
            FunctionGeneratorRepl(session).cmdloop()
    except StimFgenError as exc:
        ColorPrinter.error(str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
