"""Drains the instrument's SCPI error queue after each operation."""

from .errors import ErrorRecord


ERROR_QUERY = "SYST:ERR?"
NO_ERROR = "No error"


class ErrorMonitor:
    """
    Reads ``SYST:ERR?`` until the instrument reports an empty queue.

    The queue lives on the instrument and is FIFO, so anything left behind
    would be blamed on the next operation. ``check_errors`` therefore reads
    it to the end and only then reports whether anything was found.
    """

    def __init__(self, transport, diagnostics):
        self.transport = transport
        self.diagnostics = diagnostics
        self.last_errors = []

    def _next(self):
        self.transport.write(ERROR_QUERY)
        return self.transport.read_line()

    def check_errors(self):
        """Drain the queue.

        Returns:
            bool: True if at least one error was pending.
        """
        self.last_errors = []
        line = self._next()
        while NO_ERROR not in line:
            record = ErrorRecord.parse(line)
            self.last_errors.append(record)
            self.diagnostics.error(f"Errors method: {record}")
            line = self._next()
        return bool(self.last_errors)
