"""Redraft menubar application. Wires the global shortcut and menu to the rewrite workflow."""

from __future__ import annotations

import functools
import logging
import subprocess
import threading
import time
from dataclasses import replace
from pathlib import Path

import rumps

from redraft import __version__
from redraft.clipboard import MacClipboard
from redraft.commands import validate_settings
from redraft.config import DEFAULT_SETTINGS_PATH, AppConfig, load_config, save_config
from redraft.keystrokes import KeystrokeSimulator, check_accessibility, request_accessibility
from redraft.llm import PROVIDER_MODELS, RECOMMENDED_MODELS, create_transformer
from redraft.operations import RewriteResult, RewriteService, RewriteStatus

logger = logging.getLogger(__name__)

_IDLE_TITLE = "✍"  # writing hand
_BUSY_TITLE = "⌛"  # hourglass
_WARNING_TITLE = "⚠"


def _format_shortcut(shortcut: str) -> str:
    """'<cmd>+<shift>+d' -> '⌘⇧D' for menu display."""
    symbols = {"<cmd>": "⌘", "<shift>": "⇧", "<alt>": "⌥", "<ctrl>": "⌃"}
    return "".join(symbols.get(part, part.upper()) for part in shortcut.split("+"))


class RedraftApp(rumps.App):
    """macOS menubar app that rewrites the clipboard with an LLM."""

    def __init__(self, config: AppConfig | None = None, config_path: Path | None = None) -> None:
        self._config_path = config_path or DEFAULT_SETTINGS_PATH
        self._config = config or load_config(self._config_path)

        super().__init__(
            name="Redraft",
            title=_IDLE_TITLE,
            quit_button=None,  # We add our own quit to control ordering
        )

        # Menu items that outlive menu rebuilds
        self._status_item = rumps.MenuItem(f"Redraft v{__version__}", callback=None)
        self._detail_item = rumps.MenuItem("Ready", callback=None)
        self._ergonomic_item = rumps.MenuItem("Ergonomic Mode (copy & paste for me)", callback=self._on_toggle_ergonomic)
        self._model_menu = rumps.MenuItem("Model")
        self._model_menu_items: dict[str, rumps.MenuItem] = {}

        self._session_count: int = 0
        self._hotkey_listener = None
        self._active_shortcut: str | None = None

        self._service = RewriteService(
            clipboard=MacClipboard(),
            transformer=None,
            keystrokes=KeystrokeSimulator(),
            copy_delay_sec=self._config.output.copy_delay_ms / 1000.0,
        )

        self._initialize_components()

    def _initialize_components(self) -> None:
        """Validate settings, build the model client, menu and global shortcut."""
        logger.info("Initializing Redraft components...")

        for problem in validate_settings(
            self._config.rewrites, self._config.default_command, self._config.command_separator
        ):
            logger.warning("Settings: %s", problem)

        self._load_transformer()
        self._build_menu()
        self._start_hotkey_listener()

        logger.info("Redraft initialized")

    def _load_transformer(self) -> None:
        """(Re)create the model client from config. Leaves the app running on failure."""
        try:
            self._service.transformer = create_transformer(self._config.model)
            self.title = _IDLE_TITLE
            self._detail_item.title = "Ready"
        except Exception as e:
            logger.exception("Failed to configure model")
            self._service.transformer = None
            self.title = _WARNING_TITLE
            self._detail_item.title = f"Model not configured: {e}"

    # ------------------------------------------------------------------
    # Menu
    # ------------------------------------------------------------------

    def _build_menu(self) -> None:
        """(Re)build the full menu from the current config."""
        cfg = self._config
        shortcut = _format_shortcut(cfg.hotkey.rewrite_shortcut)

        rewrite_items = [
            rumps.MenuItem(
                f"{command.name}  ({command.command_word})",
                callback=functools.partial(self._on_rewrite_item, command.command_word),
            )
            for command in cfg.rewrites
        ]

        self._ergonomic_item.state = 1 if cfg.output.ergonomic_mode else 0
        self._build_model_submenu()

        self.menu.clear()
        self.menu = [
            self._status_item,
            self._detail_item,
            None,  # separator
            rumps.MenuItem(f"Rewrite Clipboard ({shortcut})", callback=self._on_rewrite_default),
            None,  # separator
            *rewrite_items,
            None,  # separator
            self._ergonomic_item,
            self._model_menu,
            rumps.MenuItem("Edit Settings…", callback=self._on_edit_settings),
            rumps.MenuItem("Reload Settings", callback=self._on_reload_settings),
            None,  # separator
            rumps.MenuItem("About Redraft", callback=self._on_about),
            rumps.MenuItem("Quit Redraft", callback=self._on_quit),
        ]

    def _build_model_submenu(self) -> None:
        """Populate the Model submenu with the configured provider's models."""
        if self._model_menu_items:
            self._model_menu.clear()
        self._model_menu_items = {}
        for model_id in PROVIDER_MODELS.get(self._config.model.provider, ()):
            label = f"{model_id} (recommended)" if model_id in RECOMMENDED_MODELS else model_id
            item = rumps.MenuItem(label, callback=functools.partial(self._on_select_model, model_id))
            item.state = 1 if model_id == self._config.model.model_id else 0
            self._model_menu.add(item)
            self._model_menu_items[model_id] = item

    def _update_model_checkmarks(self, model_id: str) -> None:
        for mid, item in self._model_menu_items.items():
            item.state = 1 if mid == model_id else 0

    # ------------------------------------------------------------------
    # Hotkey
    # ------------------------------------------------------------------

    def _start_hotkey_listener(self) -> None:
        """Register the global rewrite shortcut, replacing any previous one."""
        shortcut = self._config.hotkey.rewrite_shortcut
        if self._hotkey_listener is not None:
            if shortcut == self._active_shortcut:
                return
            self._hotkey_listener.stop()
            self._hotkey_listener = None

        try:
            from pynput.keyboard import GlobalHotKeys

            logger.info("Registering rewrite shortcut: %s", shortcut)
            self._hotkey_listener = GlobalHotKeys({shortcut: self._on_hotkey})
            self._hotkey_listener.daemon = True
            self._hotkey_listener.start()
            self._active_shortcut = shortcut
        except Exception:
            logger.exception("Failed to register rewrite shortcut %s", shortcut)
            self._active_shortcut = None

    def _on_hotkey(self) -> None:
        self._trigger_rewrite(self._config.default_command)

    # ------------------------------------------------------------------
    # Rewrite
    # ------------------------------------------------------------------

    def _trigger_rewrite(self, base_command: str) -> None:
        """Run a rewrite on a worker thread so the menubar stays responsive."""
        if self._service.is_busy:
            logger.info("Rewrite already in progress, ignoring trigger")
            return
        worker = threading.Thread(target=self._run_rewrite, args=(base_command,), daemon=True)
        worker.start()

    def _run_rewrite(self, base_command: str) -> None:
        """Worker thread: rewrite the clipboard and report the outcome."""
        cfg = self._config
        started = time.monotonic()
        result: RewriteResult | None = None

        self.title = _BUSY_TITLE
        self._detail_item.title = "Rewriting..."
        try:
            result = self._service.rewrite(
                cfg.rewrites,
                base_command,
                cfg.command_separator,
                ergonomic_mode=cfg.output.ergonomic_mode,
            )
        except Exception as e:
            logger.exception("Rewrite failed")
            rumps.notification("Redraft", "Error", str(e))
        finally:
            if result is None or result.status != RewriteStatus.BUSY:
                # Keep the busy glyph up long enough to be noticed
                remaining = cfg.output.min_busy_ms / 1000.0 - (time.monotonic() - started)
                if remaining > 0:
                    time.sleep(remaining)
                self.title = _IDLE_TITLE if self._service.transformer is not None else _WARNING_TITLE
                self._detail_item.title = "Ready"

        if result is not None:
            self._report(result)

    def _report(self, result: RewriteResult) -> None:
        """Surface a rewrite outcome in the menu or as a notification."""
        if result.status == RewriteStatus.REWRITTEN:
            self._session_count += 1
            n = self._session_count
            self._detail_item.title = f"Ready — {n} rewrite{'s' if n != 1 else ''} this session"
        elif result.status in (RewriteStatus.NO_INSTRUCTIONS, RewriteStatus.FAILED):
            rumps.notification("Redraft", "Rewrite failed", result.detail)

    # ------------------------------------------------------------------
    # Menu callbacks
    # ------------------------------------------------------------------

    def _on_rewrite_default(self, _sender) -> None:
        self._trigger_rewrite(self._config.default_command)

    def _on_rewrite_item(self, command_word, _sender) -> None:
        self._trigger_rewrite(command_word)

    def _on_toggle_ergonomic(self, sender) -> None:
        """Toggle copy/paste simulation around rewrites."""
        enabled = not self._config.output.ergonomic_mode
        if enabled and not check_accessibility():
            request_accessibility()
            rumps.notification(
                "Redraft",
                "Accessibility permission needed",
                "Allow Redraft in Privacy & Security → Accessibility, then enable Ergonomic Mode again.",
            )
            sender.state = 0
            return

        self._config = replace(self._config, output=replace(self._config.output, ergonomic_mode=enabled))
        sender.state = 1 if enabled else 0
        logger.info("Ergonomic mode: %s", "on" if enabled else "off")
        self._persist()

    def _on_select_model(self, model_id, _sender) -> None:
        """Switch model at runtime and persist the choice."""
        if model_id == self._config.model.model_id and self._service.transformer is not None:
            return  # already active

        logger.info("User selected model: %s", model_id)
        self._config = replace(self._config, model=replace(self._config.model, model_id=model_id))
        self._load_transformer()
        self._update_model_checkmarks(model_id)
        self._persist()

    def _persist(self) -> None:
        try:
            save_config(self._config, self._config_path)
        except Exception:
            logger.exception("Failed to save settings to %s", self._config_path)
            rumps.notification("Redraft", "Error", f"Could not save settings to {self._config_path}")

    def _on_edit_settings(self, _sender) -> None:
        """Open the settings YAML in the default editor, writing defaults first if missing."""
        if not self._config_path.exists():
            self._persist()
        subprocess.run(["open", str(self._config_path)], check=False)

    def _on_reload_settings(self, _sender) -> None:
        """Re-read settings from disk and apply them."""
        logger.info("Reloading settings from %s", self._config_path)
        self._config = load_config(self._config_path)
        # Update in place; an in-flight rewrite holds this service's lock
        self._service.copy_delay_sec = self._config.output.copy_delay_ms / 1000.0
        self._initialize_components()

    def _on_about(self, _sender) -> None:
        rumps.alert(
            title=f"Redraft v{__version__}",
            message=(
                "Rewrite the clipboard with an LLM.\n\n"
                f"Copy text, optionally append {self._config.command_separator}command "
                "or free-form instructions, then press the shortcut."
            ),
            ok="Close",
        )

    def _on_quit(self, _sender) -> None:
        """Clean shutdown."""
        if self._hotkey_listener is not None:
            self._hotkey_listener.stop()
        rumps.quit_application()


def _run_once(config: AppConfig, command: str | None) -> int:
    """Rewrite the clipboard once without the menubar. Returns a process exit code."""
    try:
        transformer = create_transformer(config.model)
    except Exception as e:
        print(f"Model not configured: {e}")
        return 2

    service = RewriteService(
        clipboard=MacClipboard(),
        transformer=transformer,
        copy_delay_sec=config.output.copy_delay_ms / 1000.0,
    )
    result = service.rewrite_clipboard(config.rewrites, command or config.default_command, config.command_separator)

    if result.status == RewriteStatus.REWRITTEN:
        print(result.detail)
        return 0
    if result.status == RewriteStatus.EMPTY:
        print("Clipboard is empty, nothing to rewrite")
        return 0
    print(f"Rewrite failed: {result.detail}")
    return 1


def main() -> None:
    """Entry point for `redraft`."""
    import argparse
    import sys

    parser = argparse.ArgumentParser(description="Redraft: rewrite clipboard text with an LLM")
    parser.add_argument("--config", metavar="PATH", type=Path, default=None,
                        help=f"Settings YAML file (default: {DEFAULT_SETTINGS_PATH})")
    parser.add_argument("--validate", action="store_true",
                        help="Check the rewrites in the settings file and exit")
    parser.add_argument("--once", nargs="?", const="", default=None, metavar="COMMAND",
                        help="Rewrite the clipboard once (default command unless COMMAND is given) and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    config_path = args.config.expanduser().resolve() if args.config else DEFAULT_SETTINGS_PATH
    config = load_config(config_path)

    if args.validate:
        problems = validate_settings(config.rewrites, config.default_command, config.command_separator)
        for problem in problems:
            print(f"- {problem}")
        if not problems:
            print(f"{len(config.rewrites)} rewrite(s) OK in {config_path}")
        sys.exit(1 if problems else 0)

    if args.once is not None:
        sys.exit(_run_once(config, args.once or None))

    app = RedraftApp(config, config_path)
    app.run()


if __name__ == "__main__":
    main()
