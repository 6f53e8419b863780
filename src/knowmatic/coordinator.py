# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""
Ghost-text suggestion state machine.

The coordinator owns the visible input and the pending suggestion.  Edits
that the suggestion cannot absorb cancel any in-flight generation and
schedule a new one after a debounce delay.  Every request carries an id;
pieces that arrive for a request that is no longer the latest are dropped.

All handlers must be called from the event loop thread.
"""

import asyncio
import enum
import logging
import re
import threading
from collections.abc import Callable, Iterator

from knowmatic.utils import DEBOUNCE_SECONDS

log = logging.getLogger(__name__)

_ACCEPT_WORD_RE = re.compile(r"\s*\S+\s*")
_NEWLINES_RE = re.compile(r"[\r\n]+")
_DONE = object()

CompleteFn = Callable[[str, threading.Event], Iterator[str]]


class SuggestionStatus(enum.Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"


class SuggestionCoordinator:
    """Debounced, cancellable ghost-text suggestions for a single input."""

    def __init__(
        self,
        complete: CompleteFn,
        debounce: float = DEBOUNCE_SECONDS,
        on_change: Callable[[], None] | None = None,
    ):
        self._complete = complete
        self._debounce = debounce
        self._on_change = on_change
        self.text = ""
        self.suggestion = ""
        self.request_id = 0
        self._generating = False
        self._task: asyncio.Task | None = None
        self._cancel: threading.Event | None = None

    # -- read accessors ------------------------------------------------------

    @property
    def status(self) -> SuggestionStatus:
        if self.suggestion:
            return SuggestionStatus.READY
        if self._generating:
            return SuggestionStatus.GENERATING
        return SuggestionStatus.IDLE

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    # -- input events --------------------------------------------------------

    def on_text_changed(self, new_text: str) -> None:
        """Handle any edit that replaces the input with *new_text*."""
        if new_text == self.text:
            return
        if new_text.startswith(self.text) and self._absorb(new_text[len(self.text):]):
            self.text = new_text
            self._notify()
            return

        self.text = new_text
        self._request()

    def insert(self, chars: str) -> None:
        self.on_text_changed(self.text + chars)

    def newline(self) -> None:
        self.on_text_changed(self.text + "\n")

    def backspace(self) -> None:
        if self.text:
            self.on_text_changed(self.text[:-1])

    def clear(self) -> None:
        self.on_text_changed("")

    def _absorb(self, typed: str) -> bool:
        """Consume *typed* from the head of the suggestion if it matches."""
        suggestion = self.suggestion
        if not suggestion:
            return False
        if suggestion.startswith(typed):
            self.suggestion = suggestion[len(typed):]
            return True
        # The input already ends in the space the suggestion starts with.
        if (
            self.text.endswith(" ")
            and suggestion.startswith(" ")
            and suggestion[1:].startswith(typed)
        ):
            self.suggestion = suggestion[1 + len(typed):]
            return True
        return False

    def accept_word(self) -> str:
        """Move the next word of the suggestion into the input.

        Returns the fragment appended to the input.
        """
        if not self.suggestion:
            return ""
        match = _ACCEPT_WORD_RE.match(self.suggestion)
        raw = match.group(0) if match else self.suggestion
        remaining = self.suggestion[len(raw):]

        accepted = _NEWLINES_RE.sub(" ", raw).rstrip()
        if accepted and remaining:
            accepted += " "
        if accepted.startswith(" ") and (not self.text or self.text[-1].isspace()):
            accepted = accepted[1:]

        self.suggestion = remaining
        self.text += accepted
        if not self.suggestion:
            self._request()
        else:
            self._notify()
        return accepted

    def cancel(self) -> None:
        """Abort in-flight generation and drop the pending suggestion."""
        self.request_id += 1
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._generating = False
        self.suggestion = ""
        self._notify()

    async def aclose(self) -> None:
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # -- generation ----------------------------------------------------------

    def _request(self) -> None:
        self.cancel()
        prompt = self.text.strip()
        if not prompt:
            return
        cancel = threading.Event()
        self._cancel = cancel
        self._task = asyncio.get_running_loop().create_task(
            self._run(self.request_id, prompt, cancel)
        )

    def _is_current(self, request_id: int, cancel: threading.Event) -> bool:
        return request_id == self.request_id and not cancel.is_set()

    async def _run(self, request_id: int, prompt: str, cancel: threading.Event) -> None:
        await asyncio.sleep(self._debounce)
        if not self._is_current(request_id, cancel):
            return

        loop = asyncio.get_running_loop()
        self._generating = True
        self._notify()
        try:
            pieces = self._complete(prompt, cancel)
            while True:
                piece = await loop.run_in_executor(None, next, pieces, _DONE)
                if piece is _DONE or not self._is_current(request_id, cancel):
                    break
                self.suggestion += piece
                self._notify()
        except Exception:
            # Faults end the suggestion where it is; nothing is surfaced.
            log.debug("Suggestion request %d ended with an error", request_id, exc_info=True)
        finally:
            if request_id == self.request_id:
                self._generating = False
                self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
