"""Temporary transport buffer widening for large transfers."""

from contextlib import contextmanager

from .device_manager import DEFAULT_BUFFER_SIZE, BufferDirection


class BufferNegotiator:
    """
    Widens one direction of the transport buffer around a transfer.

    The instrument link truncates anything longer than its buffer without
    complaint, and a permanently wide buffer slows every short exchange.
    """

    def __init__(self, transport, default_size=DEFAULT_BUFFER_SIZE):
        self.transport = transport
        self.default_size = default_size

    @contextmanager
    def widened(self, direction, size):
        """Hold ``direction`` at ``size`` bytes for the duration of the block.

        The default capacity is restored even when the block, or the
        reopen that applies the wider buffer, raises.
        """
        direction = BufferDirection(direction)
        self.transport.set_buffer_capacity(direction, max(int(size), self.default_size))
        try:
            self.transport.reopen()
            yield
        finally:
            self.transport.set_buffer_capacity(direction, self.default_size)
            self.transport.reopen()

    def with_buffer(self, direction, size, fn, *args, **kwargs):
        """Call ``fn`` under a widened buffer and return its result."""
        with self.widened(direction, size):
            return fn(*args, **kwargs)
