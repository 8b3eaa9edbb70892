"""Application entrypoint: an always-listening voice command console."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from typing import Optional, Sequence

from command_emitter import CommandEmitter
from command_parser import CommandParser
from config import JsonConfigStore
from dedup import DuplicateSuppressor
from hotkey import ToggleHotkeyAdapter
from models import Command, CommandType, SessionState, SessionStatus
from patterns import SUPPORTED_LANGUAGES
from recognizer import DashscopeSpeechEngine
from scheduler import ThreadingScheduler
from session_controller import SessionController
from sound_effects import ToneFeedback
from validation import MAX_AMOUNT

logger = logging.getLogger("nebula_voice")

STATUS_TEXT = {
    SessionStatus.IDLE: "Voice recognition paused",
    SessionStatus.LISTENING: "Listening for your command...",
    SessionStatus.RESTARTING: "Reconnecting microphone...",
    SessionStatus.FATAL: "Voice recognition stopped",
}


def describe(command: Command) -> str:
    if command.type is CommandType.UNKNOWN:
        return f'Command not recognized: "{command.original_text}"'
    if command.type is CommandType.SEND:
        target = command.address
        if target:
            return f"Send {command.amount} ETH to {target[:10]}...{target[-6:]}"
        return f"Send {command.amount} ETH (default recipient)"
    return f"{command.type.value.upper()}"


class App:
    def __init__(self, args: argparse.Namespace) -> None:
        self.config_store = JsonConfigStore()
        if args.api_key:
            self.config_store.set_api_key(args.api_key)
        if args.language:
            self.config_store.set_language(args.language)

        self.scheduler = ThreadingScheduler()
        self.state = SessionState(language_tag=self.config_store.get_language())
        self.feedback = ToneFeedback(enabled=not args.quiet)
        self.emitter = CommandEmitter(
            state=self.state,
            suppressor=DuplicateSuppressor(self.state, self.scheduler),
            parser=CommandParser(max_amount=MAX_AMOUNT),
            on_command=self._on_command,
            feedback=self.feedback,
        )
        self.controller = SessionController(
            engine=DashscopeSpeechEngine(api_key=self.config_store.get_api_key()),
            scheduler=self.scheduler,
            state=self.state,
            max_restart_attempts=self.config_store.get_max_restart_attempts(),
            on_state_change=self._on_state_change,
            on_partial=self._on_partial,
            on_final=self.emitter.handle_final_transcript,
            on_error=self._on_error,
            on_stop=self.emitter.reset,
        )
        self.hotkey = ToggleHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())
        self._done = threading.Event()

    # ------------------------------------------------------------------
    # Callbacks (called from engine and timer threads)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionStatus, to_state: SessionStatus) -> None:
        if to_state is SessionStatus.RESTARTING:
            logger.debug(STATUS_TEXT[to_state])
            return
        print(f"[{self.state.language_tag}] {STATUS_TEXT[to_state]}", flush=True)

    def _on_partial(self, text: str) -> None:
        print(f"  ... {text}", flush=True)

    def _on_error(self, code: str, message: str) -> None:
        print(f"! {message} ({code})", file=sys.stderr, flush=True)

    def _on_command(self, command: Command) -> None:
        print(f"> {describe(command)}", flush=True)

    # ------------------------------------------------------------------
    # Hotkey handler
    # ------------------------------------------------------------------

    def _on_toggle(self) -> None:
        if self.controller.state in (SessionStatus.LISTENING, SessionStatus.RESTARTING):
            self.controller.stop()
        else:
            self.controller.start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.feedback.startup()
        self.controller.start()
        try:
            self.hotkey.start(on_toggle=self._on_toggle)
            print(f"Press {self.hotkey.hotkey_name} to pause or resume listening.", flush=True)
        except Exception as exc:
            logger.warning("Hotkey disabled: %s", exc)
        try:
            self._done.wait()
        except KeyboardInterrupt:
            pass
        finally:
            self.quit()
        return 0

    def quit(self) -> None:
        self.hotkey.stop()
        self.controller.close()
        self._done.set()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Voice commands for the wallet demo.")
    parser.add_argument("--language", choices=sorted(SUPPORTED_LANGUAGES), help="recognition language tag")
    parser.add_argument("--api-key", help="DashScope API key (saved to the config file)")
    parser.add_argument("--quiet", action="store_true", help="disable feedback tones")
    parser.add_argument("--list-languages", action="store_true", help="print supported languages and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s | %(levelname)-8s | %(module)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.list_languages:
        for code, name in SUPPORTED_LANGUAGES.items():
            print(f"{code:6} {name}")
        return 0
    app = App(args)
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
