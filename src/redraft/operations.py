"""Rewrite workflow: clipboard -> resolve -> model -> clipboard."""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from redraft.commands import Command, is_blank, resolve
from redraft.llm import TextTransformer

logger = logging.getLogger(__name__)


class Clipboard(Protocol):
    def read_text(self) -> str: ...

    def write_text(self, value: str) -> None: ...


class Keystrokes(Protocol):
    def simulate_copy(self) -> None: ...

    def simulate_paste(self) -> None: ...


class RewriteStatus(enum.Enum):
    REWRITTEN = "rewritten"
    EMPTY = "empty"  # Blank clipboard, nothing to do
    NO_INSTRUCTIONS = "no_instructions"  # Non-blank clipboard but no command resolved
    BUSY = "busy"  # Another rewrite was already running
    FAILED = "failed"


@dataclass(frozen=True)
class RewriteResult:
    status: RewriteStatus
    detail: str = ""


class RewriteService:
    """Runs one rewrite at a time against injected clipboard/model/keystroke collaborators.

    A trigger that arrives while a rewrite is in flight is dropped (BUSY),
    not queued. Collaborator failures are logged and reported as FAILED.
    """

    def __init__(
        self,
        clipboard: Clipboard,
        transformer: TextTransformer | None,
        keystrokes: Keystrokes | None = None,
        copy_delay_sec: float = 0.1,
    ) -> None:
        self._clipboard = clipboard
        self._transformer = transformer
        self._keystrokes = keystrokes
        self._copy_delay_sec = copy_delay_sec
        self._lock = threading.Lock()

    @property
    def transformer(self) -> TextTransformer | None:
        return self._transformer

    @transformer.setter
    def transformer(self, transformer: TextTransformer | None) -> None:
        self._transformer = transformer

    @property
    def copy_delay_sec(self) -> float:
        return self._copy_delay_sec

    @copy_delay_sec.setter
    def copy_delay_sec(self, seconds: float) -> None:
        self._copy_delay_sec = seconds

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    def rewrite(
        self,
        rewrites: Sequence[Command],
        base_command: str,
        separator: str,
        ergonomic_mode: bool = False,
    ) -> RewriteResult:
        """Rewrite the clipboard, optionally copying the selection first and pasting after."""
        if not self._lock.acquire(blocking=False):
            logger.info("Rewrite already in progress, ignoring trigger")
            return RewriteResult(RewriteStatus.BUSY)

        try:
            if ergonomic_mode:
                self._simulate("copy")
                time.sleep(self._copy_delay_sec)

            result = self._rewrite_clipboard(rewrites, base_command, separator)

            if ergonomic_mode and result.status == RewriteStatus.REWRITTEN:
                self._simulate("paste")
            return result
        finally:
            self._lock.release()

    def rewrite_clipboard(
        self,
        rewrites: Sequence[Command],
        base_command: str,
        separator: str,
    ) -> RewriteResult:
        """Rewrite the clipboard in place (no copy/paste simulation)."""
        return self.rewrite(rewrites, base_command, separator, ergonomic_mode=False)

    def _simulate(self, action: str) -> None:
        """Best-effort copy/paste simulation; failures are logged only."""
        if self._keystrokes is None:
            logger.warning("No keystroke simulator configured, skipping %s", action)
            return
        try:
            if action == "copy":
                self._keystrokes.simulate_copy()
            else:
                self._keystrokes.simulate_paste()
        except Exception:
            if action == "copy":
                logger.exception("Failed to simulate copy, falling back to clipboard content")
            else:
                logger.exception("Failed to simulate paste, result is still in clipboard")

    def _rewrite_clipboard(
        self,
        rewrites: Sequence[Command],
        base_command: str,
        separator: str,
    ) -> RewriteResult:
        try:
            content = self._clipboard.read_text()
        except Exception as e:
            logger.exception("Failed to read clipboard")
            return RewriteResult(RewriteStatus.FAILED, f"Could not read clipboard: {e}")

        parsed = resolve(content, rewrites, base_command, separator)
        if parsed is None:
            if is_blank(content):
                return RewriteResult(RewriteStatus.EMPTY)
            logger.error("No instructions found for command: %s", base_command)
            return RewriteResult(
                RewriteStatus.NO_INSTRUCTIONS,
                f"No instructions found for command '{base_command}'",
            )

        if self._transformer is None:
            logger.error("No model configured, cannot rewrite")
            return RewriteResult(RewriteStatus.FAILED, "No model configured")

        try:
            transformed = self._transformer.transform(parsed.instructions, parsed.text)
        except Exception as e:
            logger.warning("Model invocation failed: %s", e)
            return RewriteResult(RewriteStatus.FAILED, str(e) or type(e).__name__)

        try:
            self._clipboard.write_text(transformed)
        except Exception as e:
            logger.exception("Failed to write clipboard")
            return RewriteResult(RewriteStatus.FAILED, f"Could not write clipboard: {e}")

        logger.info("Rewrote %d chars into %d chars", len(parsed.text), len(transformed))
        return RewriteResult(RewriteStatus.REWRITTEN, transformed)
