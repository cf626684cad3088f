"""
In-memory stand-in for a 33500B on the other end of the link.

Usage:
    stim-fgen --mock
"""

import itertools
import re
from collections import deque

from .device_manager import DEFAULT_BUFFER_SIZE, BufferDirection
from .errors import TransportError


class MockFunctionGenerator:
    """Transport that answers like the instrument and records every write."""

    IDN = "Agilent Technologies,33522B,MY00000000,4.00-1.19-2.00-58-00"

    _serial = itertools.count(1)

    def __init__(self, resource_name=None, fail_on_open=False):
        if resource_name is None:
            resource_name = f"MOCK{next(self._serial)}::33522B::INSTR"
        self.resource_name = resource_name
        self.fail_on_open = fail_on_open
        self.is_open = False
        self.writes = []
        self.reopen_count = 0
        self.buffer_capacity = {
            BufferDirection.INPUT: DEFAULT_BUFFER_SIZE,
            BufferDirection.OUTPUT: DEFAULT_BUFFER_SIZE,
        }
        # capacity in force when each write happened
        self.write_capacity = []
        self.error_queue = deque()
        self.volatile = {1: [], 2: []}
        self.storage = {}
        self.attributes = {}
        self._responses = deque()

    # ==========================================
    # TEST HOOKS
    # ==========================================

    def push_error(self, code, message):
        self.error_queue.append(f'{code},"{message}"')

    def add_file(self, folder, name, size=16000):
        self.storage.setdefault(folder, []).append((name, size))

    def set_attributes(self, target, crest_factor=1.414, peak_to_peak=2.0):
        self.attributes[target] = (crest_factor, peak_to_peak)

    @property
    def lines(self):
        """Every command line received, split out of multi-line writes."""
        return [line for text in self.writes for line in text.split("\n")]

    def clear_history(self):
        self.writes.clear()
        self.write_capacity.clear()

    # ==========================================
    # TRANSPORT INTERFACE
    # ==========================================

    def connect(self):
        if self.fail_on_open:
            raise TransportError(f"Failed to connect to {self.resource_name}: VI_ERROR_RSRC_NFOUND")
        self.is_open = True

    def disconnect(self):
        self.is_open = False

    def reopen(self):
        self.disconnect()
        self.connect()
        self.reopen_count += 1

    def set_buffer_capacity(self, direction, size):
        self.buffer_capacity[BufferDirection(direction)] = int(size)

    def write(self, text):
        if not self.is_open:
            raise TransportError("Instrument not connected.")
        if len(text) > self.buffer_capacity[BufferDirection.OUTPUT]:
            raise TransportError(
                f"Write of {len(text)} bytes exceeds {self.buffer_capacity[BufferDirection.OUTPUT]} byte buffer"
            )
        self.writes.append(text)
        self.write_capacity.append(self.buffer_capacity[BufferDirection.OUTPUT])
        for line in text.split("\n"):
            self._execute(line.strip())

    def read_line(self):
        if not self.is_open:
            raise TransportError("Instrument not connected.")
        if not self._responses:
            raise TransportError("Read timed out: no pending response.")
        response = self._responses.popleft()
        return response[: self.buffer_capacity[BufferDirection.INPUT]]

    def query(self, text):
        self.write(text)
        return self.read_line()

    # ==========================================
    # COMMAND EMULATION
    # ==========================================

    def _volatile_names(self):
        return [name for ch in (1, 2) for name in self.volatile[ch]]

    def _execute(self, line):
        upper = line.upper()
        if upper == "*IDN?":
            self._responses.append(self.IDN)
        elif upper == "SYST:ERR?":
            self._responses.append(self.error_queue.popleft() if self.error_queue else '+0,"No error"')
        elif upper == "DATA:VOL:CAT?":
            names = self._volatile_names() or ["EXP_RISE"]
            self._responses.append(",".join(f'"{n}"' for n in names))
        elif upper.startswith("MMEM:CAT:DATA:ARB?"):
            folder = line.split(" ", 1)[1].strip().strip('"')
            files = self.storage.get(folder, [])
            used = sum(size for _, size in files)
            entries = ",".join(f'"{name},ARB,{size}"' for name, size in files)
            self._responses.append(f"{used},{64000000 - used}" + ("," + entries if entries else ""))
        elif upper.startswith("DATA:ATTR:CFAC?") or upper.startswith("DATA:ATTR:PTP?"):
            target = line.split(" ", 1)[1].strip().strip('"')
            crest, ptp = self.attributes.get(target, (1.414, 2.0))
            value = crest if "CFAC" in upper else ptp
            self._responses.append(f"{value:+.8E}")
        else:
            self._execute_memory(line)

    def _execute_memory(self, line):
        clear = re.match(r"SOUR(\d):DATA:VOL:CLE", line, re.IGNORECASE)
        load = re.match(r'MMEM:LOAD:DATA(\d) "(.*)"', line, re.IGNORECASE)
        dac = re.match(r"SOUR(\d):DATA:ARB:DAC (\w+),", line, re.IGNORECASE)
        store = re.match(r'MMEM:STORE:DATA "(.*\\)(.*)"', line, re.IGNORECASE)
        if clear:
            self.volatile[int(clear.group(1))] = []
        elif load:
            self.volatile[int(load.group(1))].append(load.group(2))
        elif dac:
            self.volatile[int(dac.group(1))].append(dac.group(2))
        elif store:
            self.add_file(store.group(1), store.group(2))
