"""Final transcript to published command wiring."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from command_parser import CommandParser
from dedup import DuplicateSuppressor
from interfaces import FeedbackService
from models import Command, CommandType, SessionState

logger = logging.getLogger(__name__)

CommandCallback = Callable[[Command], None]

# Unknown results need more than three characters to be shown to the user.
DEFAULT_MIN_UNKNOWN_LENGTH = 4


class CommandEmitter:
    """Publishes each accepted final transcript as exactly one ``Command``.

    Duplicates are dropped by the suppressor before parsing.  ``UNKNOWN``
    results shorter than ``min_unknown_length`` are treated as noise and not
    published; longer ones are, so the UI can say "not recognized".
    """

    def __init__(
        self,
        state: SessionState,
        suppressor: DuplicateSuppressor,
        parser: Optional[CommandParser] = None,
        on_command: Optional[CommandCallback] = None,
        feedback: Optional[FeedbackService] = None,
        min_unknown_length: int = DEFAULT_MIN_UNKNOWN_LENGTH,
    ) -> None:
        self._state = state
        self._suppressor = suppressor
        self._parser = parser or CommandParser()
        self._on_command = on_command
        self._feedback = feedback
        self._min_unknown_length = min_unknown_length
        self._last_command: Optional[Command] = None

    @property
    def last_command(self) -> Optional[Command]:
        return self._last_command

    def handle_final_transcript(self, transcript: str) -> Optional[Command]:
        if not self._suppressor.accept(transcript):
            return None
        command = self._parser.parse(transcript, self._state.language_tag)
        if command.type is CommandType.UNKNOWN and len(command.original_text.strip()) < self._min_unknown_length:
            logger.debug("dropped short unrecognized transcript %r", transcript)
            return None

        logger.info("voice command %s from %r", command.type.value, transcript)
        self._last_command = command
        if self._on_command:
            self._on_command(command)
        if self._feedback and command.type is not CommandType.UNKNOWN:
            self._notify_feedback(command)
        return command

    def reset(self) -> None:
        """Forget the suppression record; wired as the controller's stop hook."""
        self._suppressor.clear()
        self._last_command = None

    def _notify_feedback(self, command: Command) -> None:
        try:
            self._feedback.command_recognized(command)
        except Exception:
            logger.warning("audio feedback failed", exc_info=True)
