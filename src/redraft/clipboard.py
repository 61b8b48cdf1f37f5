"""Plain-text access to the macOS general pasteboard."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ClipboardError(RuntimeError):
    """The pasteboard refused a read or write."""


class MacClipboard:
    """Reads and writes plain text on NSPasteboard. AppKit is imported on first use."""

    def _pasteboard(self):
        import AppKit

        return AppKit.NSPasteboard.generalPasteboard()

    def read_text(self) -> str:
        """Return the current clipboard text, or "" when it holds no text."""
        import AppKit

        value = self._pasteboard().stringForType_(AppKit.NSPasteboardTypeString)
        text = str(value) if value is not None else ""
        logger.debug("Read %d chars from clipboard", len(text))
        return text

    def write_text(self, value: str) -> None:
        """Replace the clipboard contents with value."""
        import AppKit

        pb = self._pasteboard()
        pb.clearContents()
        if not pb.setString_forType_(value, AppKit.NSPasteboardTypeString):
            raise ClipboardError("Pasteboard rejected the text")
        logger.debug("Wrote %d chars to clipboard", len(value))
