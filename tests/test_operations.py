"""Tests for RewriteService: clipboard -> resolve -> model -> clipboard."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from redraft.commands import Command
from redraft.operations import RewriteResult, RewriteService, RewriteStatus

REWRITES = [
    Command(name="Fix", command_word="fix", instructions="Fix spelling, grammar, formatting and capitalization."),
    Command(name="Improve", command_word="improve", instructions="Improve the writing while preserving meaning."),
]


class FakeClipboard:
    def __init__(self, text: str = "") -> None:
        self.text = text
        self.writes: list[str] = []

    def read_text(self) -> str:
        return self.text

    def write_text(self, value: str) -> None:
        self.writes.append(value)
        self.text = value


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clipboard() -> FakeClipboard:
    return FakeClipboard()


@pytest.fixture
def transformer() -> MagicMock:
    mock = MagicMock()
    mock.transform.return_value = "transformed text"
    return mock


@pytest.fixture
def keystrokes() -> MagicMock:
    return MagicMock()


@pytest.fixture
def service(clipboard: FakeClipboard, transformer: MagicMock, keystrokes: MagicMock) -> RewriteService:
    return RewriteService(clipboard, transformer, keystrokes, copy_delay_sec=0)


# ---------------------------------------------------------------------------
# rewrite_clipboard
# ---------------------------------------------------------------------------


class TestRewriteClipboard:
    def test_invokes_transformer_with_parsed_text_and_instructions(self, service, clipboard, transformer) -> None:
        clipboard.text = "Hello world"
        service.rewrite_clipboard(REWRITES, "fix", "///")
        transformer.transform.assert_called_once_with(
            "Fix spelling, grammar, formatting and capitalization.", "Hello world"
        )

    def test_writes_result_back_to_clipboard(self, service, clipboard, transformer) -> None:
        clipboard.text = "Hello world///improve"
        transformer.transform.return_value = "Improved text"

        result = service.rewrite_clipboard(REWRITES, "fix", "///")

        assert result == RewriteResult(RewriteStatus.REWRITTEN, "Improved text")
        assert clipboard.writes == ["Improved text"]
        transformer.transform.assert_called_once_with("Improve the writing while preserving meaning.", "Hello world")

    def test_adhoc_instructions_sent_to_model(self, service, clipboard, transformer) -> None:
        clipboard.text = "Hello world///make it formal"
        service.rewrite_clipboard(REWRITES, "fix", "///")
        transformer.transform.assert_called_once_with("make it formal", "Hello world")

    def test_empty_clipboard_does_nothing(self, service, clipboard, transformer, caplog) -> None:
        clipboard.text = "   "
        result = service.rewrite_clipboard(REWRITES, "fix", "///")

        assert result.status == RewriteStatus.EMPTY
        transformer.transform.assert_not_called()
        assert clipboard.writes == []
        assert "No instructions" not in caplog.text

    def test_byte_order_mark_only_clipboard_is_empty(self, service, clipboard, transformer) -> None:
        clipboard.text = "\ufeff\n"
        assert service.rewrite_clipboard(REWRITES, "fix", "///").status == RewriteStatus.EMPTY
        transformer.transform.assert_not_called()

    def test_no_matching_instructions_logs_error(self, service, clipboard, transformer, caplog) -> None:
        clipboard.text = "Hello world"
        result = service.rewrite_clipboard(REWRITES, "unknown_command", "///")

        assert result.status == RewriteStatus.NO_INSTRUCTIONS
        assert "unknown_command" in result.detail
        transformer.transform.assert_not_called()
        assert clipboard.writes == []
        assert "No instructions found for command: unknown_command" in caplog.text

    def test_model_failure_reported_not_raised(self, service, clipboard, transformer) -> None:
        clipboard.text = "Hello world"
        transformer.transform.side_effect = RuntimeError("invalid api key")

        result = service.rewrite_clipboard(REWRITES, "fix", "///")

        assert result == RewriteResult(RewriteStatus.FAILED, "invalid api key")
        assert clipboard.writes == []

    def test_clipboard_read_failure_reported(self, transformer) -> None:
        clipboard = MagicMock()
        clipboard.read_text.side_effect = RuntimeError("pasteboard unavailable")
        service = RewriteService(clipboard, transformer)

        result = service.rewrite_clipboard(REWRITES, "fix", "///")

        assert result.status == RewriteStatus.FAILED
        assert "pasteboard unavailable" in result.detail
        transformer.transform.assert_not_called()

    def test_clipboard_write_failure_reported(self, transformer) -> None:
        clipboard = MagicMock()
        clipboard.read_text.return_value = "Hello world"
        clipboard.write_text.side_effect = RuntimeError("rejected")
        service = RewriteService(clipboard, transformer)

        result = service.rewrite_clipboard(REWRITES, "fix", "///")

        assert result.status == RewriteStatus.FAILED
        assert "rejected" in result.detail

    def test_no_transformer_configured(self, clipboard) -> None:
        clipboard.text = "Hello world"
        service = RewriteService(clipboard, None)

        result = service.rewrite_clipboard(REWRITES, "fix", "///")

        assert result == RewriteResult(RewriteStatus.FAILED, "No model configured")
        assert clipboard.writes == []

    def test_transformer_can_be_swapped(self, service, clipboard) -> None:
        other = MagicMock()
        other.transform.return_value = "from other model"
        service.transformer = other
        clipboard.text = "Hello world"

        service.rewrite_clipboard(REWRITES, "fix", "///")

        assert clipboard.writes == ["from other model"]


# ---------------------------------------------------------------------------
# rewrite (ergonomic mode)
# ---------------------------------------------------------------------------


class TestErgonomicRewrite:
    def test_copy_and_paste_simulated_around_rewrite(self, service, clipboard, keystrokes) -> None:
        clipboard.text = "Hello world"
        calls: list[str] = []
        keystrokes.simulate_copy.side_effect = lambda: calls.append("copy")
        keystrokes.simulate_paste.side_effect = lambda: calls.append(f"paste:{clipboard.text}")

        result = service.rewrite(REWRITES, "fix", "///", ergonomic_mode=True)

        assert result.status == RewriteStatus.REWRITTEN
        assert calls == ["copy", "paste:transformed text"]

    def test_no_simulation_without_ergonomic_mode(self, service, clipboard, keystrokes) -> None:
        clipboard.text = "Hello world"
        service.rewrite(REWRITES, "fix", "///", ergonomic_mode=False)
        keystrokes.simulate_copy.assert_not_called()
        keystrokes.simulate_paste.assert_not_called()

    def test_copy_failure_falls_back_to_clipboard(self, service, clipboard, keystrokes, caplog) -> None:
        clipboard.text = "Hello world"
        keystrokes.simulate_copy.side_effect = RuntimeError("not trusted")

        result = service.rewrite(REWRITES, "fix", "///", ergonomic_mode=True)

        assert result.status == RewriteStatus.REWRITTEN
        assert clipboard.writes == ["transformed text"]
        assert "Failed to simulate copy" in caplog.text

    def test_paste_failure_keeps_result_in_clipboard(self, service, clipboard, keystrokes, caplog) -> None:
        clipboard.text = "Hello world"
        keystrokes.simulate_paste.side_effect = RuntimeError("not trusted")

        result = service.rewrite(REWRITES, "fix", "///", ergonomic_mode=True)

        assert result.status == RewriteStatus.REWRITTEN
        assert clipboard.text == "transformed text"
        assert "Failed to simulate paste" in caplog.text

    def test_no_paste_when_nothing_rewritten(self, service, clipboard, keystrokes) -> None:
        clipboard.text = ""
        result = service.rewrite(REWRITES, "fix", "///", ergonomic_mode=True)

        assert result.status == RewriteStatus.EMPTY
        keystrokes.simulate_copy.assert_called_once()
        keystrokes.simulate_paste.assert_not_called()

    def test_waits_for_clipboard_after_copy(self, clipboard, transformer, keystrokes) -> None:
        clipboard.text = "Hello world"
        service = RewriteService(clipboard, transformer, keystrokes, copy_delay_sec=0.25)
        with patch("redraft.operations.time.sleep") as mock_sleep:
            service.rewrite(REWRITES, "fix", "///", ergonomic_mode=True)
        mock_sleep.assert_called_once_with(0.25)

    def test_copy_delay_can_be_changed(self, clipboard, transformer, keystrokes) -> None:
        clipboard.text = "Hello world"
        service = RewriteService(clipboard, transformer, keystrokes, copy_delay_sec=0.25)
        service.copy_delay_sec = 0.5
        with patch("redraft.operations.time.sleep") as mock_sleep:
            service.rewrite(REWRITES, "fix", "///", ergonomic_mode=True)
        mock_sleep.assert_called_once_with(0.5)

    def test_missing_keystroke_simulator_is_tolerated(self, clipboard, transformer) -> None:
        clipboard.text = "Hello world"
        service = RewriteService(clipboard, transformer, keystrokes=None, copy_delay_sec=0)

        result = service.rewrite(REWRITES, "fix", "///", ergonomic_mode=True)

        assert result.status == RewriteStatus.REWRITTEN


# ---------------------------------------------------------------------------
# Single flight
# ---------------------------------------------------------------------------


class TestSingleFlight:
    def test_overlapping_trigger_is_ignored(self, clipboard) -> None:
        clipboard.text = "Hello world"
        entered = threading.Event()
        release = threading.Event()

        def slow_transform(instructions: str, text: str) -> str:
            entered.set()
            release.wait(timeout=5)
            return "done"

        transformer = MagicMock()
        transformer.transform.side_effect = slow_transform
        service = RewriteService(clipboard, transformer)

        results: list[RewriteResult] = []
        worker = threading.Thread(target=lambda: results.append(service.rewrite_clipboard(REWRITES, "fix", "///")))
        worker.start()
        assert entered.wait(timeout=5)

        assert service.is_busy
        second = service.rewrite_clipboard(REWRITES, "fix", "///")
        assert second.status == RewriteStatus.BUSY

        release.set()
        worker.join(timeout=5)

        assert results[0].status == RewriteStatus.REWRITTEN
        assert transformer.transform.call_count == 1
        assert not service.is_busy

    def test_lock_released_after_failure(self, service, clipboard, transformer) -> None:
        clipboard.text = "Hello world"
        transformer.transform.side_effect = RuntimeError("boom")
        assert service.rewrite_clipboard(REWRITES, "fix", "///").status == RewriteStatus.FAILED

        transformer.transform.side_effect = None
        assert service.rewrite_clipboard(REWRITES, "fix", "///").status == RewriteStatus.REWRITTEN
