"""Copy/paste simulation via CGEvents and the Accessibility permission it needs."""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
import subprocess

logger = logging.getLogger(__name__)

_KEYCODE_C = 8
_KEYCODE_V = 9

ACCESSIBILITY_URL = "x-apple.systempreferences:com.apple.preference.security?Privacy_Accessibility"


def _post_command_key(keycode: int) -> None:
    """Post key down + key up for Cmd+<keycode> to the HID event tap."""
    import Quartz

    source = Quartz.CGEventSourceCreate(Quartz.kCGEventSourceStateHIDSystemState)
    if source is None:
        raise RuntimeError("Failed to create event source")

    for key_down in (True, False):
        event = Quartz.CGEventCreateKeyboardEvent(source, keycode, key_down)
        if event is None:
            raise RuntimeError(f"Failed to create keyboard event for keycode {keycode}")
        Quartz.CGEventSetFlags(event, Quartz.kCGEventFlagMaskCommand)
        Quartz.CGEventPost(Quartz.kCGHIDEventTap, event)


class KeystrokeSimulator:
    """Sends Cmd+C / Cmd+V to the frontmost application."""

    def simulate_copy(self) -> None:
        logger.debug("Simulating Cmd+C")
        _post_command_key(_KEYCODE_C)

    def simulate_paste(self) -> None:
        logger.debug("Simulating Cmd+V")
        _post_command_key(_KEYCODE_V)


def check_accessibility() -> bool:
    """Check if Accessibility (AXIsProcessTrusted) is granted."""
    lib_path = ctypes.util.find_library("ApplicationServices")
    if lib_path is None:
        return False
    try:
        lib = ctypes.cdll.LoadLibrary(lib_path)
        return bool(lib.AXIsProcessTrusted())
    except Exception:
        logger.debug("Could not check AXIsProcessTrusted")
        return False


def request_accessibility() -> None:
    """Open the Accessibility pane of System Settings so the user can grant access."""
    logger.info("Opening Accessibility settings")
    subprocess.run(["open", ACCESSIBILITY_URL], check=False)
