"""Colored operator console output."""


class ColorPrinter:
    """
    Prints status lines for the operator using ANSI escape codes.

    Set ``ColorPrinter.quiet = True`` to silence everything except errors,
    e.g. when the driver is embedded in a longer acquisition script.
    """

    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    MAGENTA = "\033[95m"
    BOLD = "\033[1m"
    RESET = "\033[0m"

    quiet = False

    @classmethod
    def _emit(cls, color, message, always=False):
        if cls.quiet and not always:
            return
        print(f"{color}{message}{cls.RESET}")

    @classmethod
    def info(cls, message):
        cls._emit(cls.BLUE, f"[INFO] {message}")

    @classmethod
    def success(cls, message):
        cls._emit(cls.GREEN, f"[SUCCESS] {message}")

    @classmethod
    def warning(cls, message):
        cls._emit(cls.YELLOW, f"[WARNING] {message}")

    @classmethod
    def error(cls, message):
        cls._emit(cls.RED, f"[ERROR] {message}", always=True)

    @classmethod
    def command(cls, message):
        """Echo SCPI traffic in cyan."""
        cls._emit(cls.CYAN, message)

    @classmethod
    def header(cls, message):
        cls._emit(cls.MAGENTA + cls.BOLD, f"\n{'=' * 60}\n   {message.upper()}\n{'=' * 60}\n")
