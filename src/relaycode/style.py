"""Terminal colors for relaycode output.

Color is decided once at import: FORCE_COLOR and NO_COLOR win, otherwise
stdout must be a terminal (and, on Windows, accept virtual terminal mode).
Without color every helper returns its text unchanged.
"""

import json
import os
import sys
from typing import Any

_CODES = {
    "dim": "90",
    "bold": "1",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "cyan": "36",
}


def enable_windows_ansi() -> bool:
    """Switch the Windows console to virtual terminal processing.

    Returns:
        True if escape sequences will be rendered.
    """
    try:
        import ctypes
        kernel32 = ctypes.windll.kernel32
        handle = kernel32.GetStdHandle(-11)  # STD_OUTPUT_HANDLE
        mode = ctypes.c_ulong()
        if not kernel32.GetConsoleMode(handle, ctypes.byref(mode)):
            return False
        # ENABLE_VIRTUAL_TERMINAL_PROCESSING
        return bool(kernel32.SetConsoleMode(handle, mode.value | 0x0004))
    except (AttributeError, OSError):
        return False


def _supports_color() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    if os.name == "nt":
        return enable_windows_ansi()
    return True


USE_COLOR = _supports_color()


def paint(text: str, style: str) -> str:
    """Wrap text in the escape sequence for `style` when color is on."""
    if not USE_COLOR:
        return text
    return f"\033[{_CODES[style]}m{text}\033[0m"


def dim(text: str) -> str:
    return paint(text, "dim")


def bold(text: str) -> str:
    return paint(text, "bold")


def red(text: str) -> str:
    return paint(text, "red")


def green(text: str) -> str:
    return paint(text, "green")


def yellow(text: str) -> str:
    return paint(text, "yellow")


def cyan(text: str) -> str:
    return paint(text, "cyan")


def debug_block(label: str, data: Any) -> str:
    """Format a labelled debug dump; non-string data is shown as JSON."""
    if isinstance(data, str):
        body = data
    else:
        try:
            body = json.dumps(data, indent=2, default=str)
        except (TypeError, ValueError):
            body = str(data)
    return dim(f"[DEBUG {label}]\n{body}")
