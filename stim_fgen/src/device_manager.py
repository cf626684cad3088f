"""
PyVISA transport for the function generator.

The session only needs four things from a transport: write a line, read a
line, change the I/O buffer capacity, and reopen the link so a new
capacity takes effect. Anything implementing :class:`Transport` can stand
in for the real instrument.
"""

from enum import Enum
from typing import Dict, Protocol

import pyvisa

from .errors import TransportError
from .terminal import ColorPrinter


DEFAULT_BUFFER_SIZE = 512


class BufferDirection(Enum):
    INPUT = "input"
    OUTPUT = "output"


class Transport(Protocol):
    buffer_capacity: Dict[BufferDirection, int]

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def write(self, text: str) -> None: ...

    def read_line(self) -> str: ...

    def set_buffer_capacity(self, direction: BufferDirection, size: int) -> None: ...

    def reopen(self) -> None: ...


class DeviceManager:
    """
    Line-oriented SCPI link to one VISA resource.
    """

    def __init__(self, resource_name, timeout_ms=5000):
        self.rm = pyvisa.ResourceManager()
        self.resource_name = resource_name
        self.timeout_ms = timeout_ms
        self.instrument = None
        self.buffer_capacity = {
            BufferDirection.INPUT: DEFAULT_BUFFER_SIZE,
            BufferDirection.OUTPUT: DEFAULT_BUFFER_SIZE,
        }

    @property
    def is_open(self):
        return self.instrument is not None

    def connect(self):
        """Connects to the instrument."""
        try:
            self.instrument = self.rm.open_resource(self.resource_name)
        except pyvisa.VisaIOError as e:
            self.instrument = None
            raise TransportError(
                f"Failed to connect to {self.resource_name}: {e}"
            ) from e
        self.instrument.timeout = self.timeout_ms
        self.instrument.read_termination = "\n"
        self.instrument.write_termination = "\n"
        self._apply_buffer_capacity()

    def disconnect(self):
        """Disconnects from the instrument."""
        if self.instrument:
            self.instrument.close()
            self.instrument = None

    def _require_open(self):
        if not self.instrument:
            raise TransportError("Instrument not connected.")
        return self.instrument

    def write(self, text):
        """Sends text without waiting for a response."""
        self._require_open().write(text)

    def read_line(self):
        """Reads one response line."""
        return self._require_open().read().strip()

    def query(self, text):
        """Sends a command and returns the response."""
        self.write(text)
        return self.read_line()

    # ==========================================
    # BUFFER CAPACITY
    # ==========================================

    def set_buffer_capacity(self, direction, size):
        """Record the capacity applied on the next :meth:`reopen`.

        Args:
            direction (BufferDirection): INPUT (reads) or OUTPUT (writes).
            size (int): Capacity in bytes.
        """
        if size <= 0:
            raise ValueError(f"Buffer size must be positive, got {size}")
        self.buffer_capacity[BufferDirection(direction)] = int(size)

    def reopen(self):
        """Close and reopen the resource so pending buffer sizes take effect."""
        self.disconnect()
        self.connect()

    def _apply_buffer_capacity(self):
        inst = self.instrument
        inst.chunk_size = self.buffer_capacity[BufferDirection.INPUT]
        try:
            inst.visalib.set_buffer(
                inst.session,
                pyvisa.constants.BufferType.write,
                self.buffer_capacity[BufferDirection.OUTPUT],
            )
        except (NotImplementedError, pyvisa.VisaIOError) as e:
            ColorPrinter.warning(
                f"{self.resource_name}: write buffer size not applied ({e})"
            )
