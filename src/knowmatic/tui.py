# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Interactive terminal client: type a prompt, accept ghost text, classify."""

import asyncio
import functools
import os
import shutil
import sys

from prompt_toolkit.application import Application
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout
from prompt_toolkit.layout.containers import Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.styles import Style

from knowmatic.api import MODEL_MAP, Autocompleter, PromptReport, analyze
from knowmatic.coordinator import SuggestionCoordinator, SuggestionStatus
from knowmatic.utils import INTERACTIVE_PARAMS

BAR_WIDTH = 28

STYLE = Style.from_dict(
    {
        "title": "bold ansicyan",
        "dim": "ansibrightblack",
        "ghost": "ansibrightblack",
        "prompt": "ansicyan",
        "key": "ansicyan",
        "heading": "bold",
        "top": "bold",
        "low": "ansigreen",
        "mid": "ansiyellow",
        "high": "ansired",
        "code": "ansicyan",
        "saving": "ansigreen",
    }
)

LEVEL_STYLES = {
    "Easy": "class:low",
    "Medium": "class:mid",
    "Hard": "class:high",
    "low": "class:low",
    "medium": "class:mid",
    "high": "class:high",
}


def _bar(ratio: float, style: str) -> list[tuple[str, str]]:
    filled = round(ratio * BAR_WIDTH)
    return [(style, "█" * filled), ("class:dim", "░" * (BAR_WIDTH - filled))]


def _pct(score: float) -> str:
    return f"{score * 100:.1f}%".rjust(6)


def _section(title, predictions, label_of=lambda p: p.label, width=8, limit=None):
    """Ranked bars for one classifier."""
    out = [("class:heading", f" {title}\n"), ("", "\n")]
    shown = predictions[:limit] if limit else predictions
    for i, p in enumerate(shown):
        style = LEVEL_STYLES.get(p.label, "class:code")
        if i == 0:
            out.append(("class:top", " > "))
            out.append((f"{style} bold", label_of(p).ljust(width)))
        else:
            out.append(("", "   "))
            out.append(("class:dim", label_of(p).ljust(width)))
        out.append(("", " "))
        out.extend(_bar(p.score, style if i == 0 else "class:dim"))
        out.append(("class:dim", f" {_pct(p.score)}\n"))
    return out


def render_report(report: PromptReport, rule: str) -> list[tuple[str, str]]:
    top = report.difficulty[0]
    out = [("", "\n")]
    out += _section("Model Selection", report.difficulty, lambda p: MODEL_MAP.get(p.label, p.label))
    out += [
        ("", "\n"),
        ("class:dim", " Route → "),
        (f"{LEVEL_STYLES.get(top.label, '')} bold", f"{report.suggested_model}\n"),
        ("class:dim", rule),
        ("", "\n"),
    ]

    effort = report.effort[0]
    out += _section("Reasoning Effort", report.effort)
    out += [
        ("", "\n"),
        ("class:dim", " Effort → "),
        (f"{LEVEL_STYLES.get(effort.label, '')} bold", f"{effort.label}\n"),
        ("class:dim", rule),
        ("", "\n"),
    ]

    if report.code.detected and report.code.predictions:
        out += _section("Code Detection", report.code.predictions, width=14, limit=3)
        out += [
            ("", "\n"),
            ("class:dim", " Language → "),
            ("class:code bold", f"{report.code.predictions[0].label}\n"),
        ]
    else:
        out += [("class:heading", " Code Detection\n"), ("", "\n"), ("class:dim", "   No code detected\n")]

    if top.label != "Hard" and report.savings_pct:
        out += [
            ("", "\n"),
            ("class:dim", " Cost → "),
            ("class:saving", f"{report.savings_pct}% savings"),
            ("class:dim", f" routing to {report.suggested_model} instead of Opus\n"),
        ]
    out += [("", "\n"), ("class:dim", f" Classified in {report.latency_ms}ms\n")]
    return out


class KnowmaticApp:
    """Full-screen client wiring key presses to a :class:`SuggestionCoordinator`."""

    def __init__(self, autocompleter: Autocompleter, classify_fn):
        self.autocompleter = autocompleter
        self.classify_fn = classify_fn
        self.report: PromptReport | None = None
        self.message = ""
        self.coordinator = SuggestionCoordinator(self._complete, on_change=self._invalidate)
        self.app: Application = Application(
            layout=Layout(
                Window(
                    FormattedTextControl(self._render, focusable=True, show_cursor=True),
                    wrap_lines=True,
                )
            ),
            key_bindings=self._make_key_bindings(),
            style=STYLE,
            full_screen=True,
        )

    def _complete(self, text, cancel):
        return self.autocompleter.stream(text, cancel, **INTERACTIVE_PARAMS)

    def _invalidate(self):
        self.app.invalidate()

    # -- key bindings --------------------------------------------------------

    def _make_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()
        coord = self.coordinator

        @kb.add("c-c")
        def _quit(event):
            event.app.exit()

        @kb.add("c-u")
        def _clear(event):
            self.report = None
            self.message = ""
            coord.clear()

        @kb.add("tab")
        def _accept(event):
            coord.accept_word()

        @kb.add("enter")
        def _classify(event):
            text = coord.text
            if text.strip():
                coord.cancel()
                self.message = "classifying..."
                event.app.create_background_task(self._classify(text))

        @kb.add("escape", "enter")
        def _newline(event):
            self.report = None
            coord.newline()

        @kb.add("escape")
        def _dismiss(event):
            coord.cancel()

        @kb.add("backspace")
        def _backspace(event):
            self.report = None
            coord.backspace()

        @kb.add("<any>")
        def _insert(event):
            data = event.data
            if data and data.isprintable():
                self.report = None
                coord.insert(data)

        return kb

    async def _classify(self, text: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            self.report = await loop.run_in_executor(None, functools.partial(self.classify_fn, text))
            self.message = ""
        except Exception as e:
            self.message = f"Error: {e}"
        self.app.invalidate()

    # -- rendering -----------------------------------------------------------

    def _render(self) -> list[tuple[str, str]]:
        width = min(shutil.get_terminal_size().columns, 90)
        rule = " " + "─" * (width - 2) + "\n"
        coord = self.coordinator
        text, suggestion = coord.text, coord.suggestion

        out: list[tuple[str, str]] = [
            ("class:title", " knowmatic"),
            ("class:dim", " · local prompt classification\n"),
            ("class:dim", rule),
            ("", "\n"),
        ]

        lines = text.split("\n")
        for i, line in enumerate(lines):
            out.append(("class:prompt", " > "))
            out.append(("", line))
            if i == len(lines) - 1:
                out.append(("[SetCursorPosition]", ""))
                ghost = suggestion[1:] if text.endswith(" ") and suggestion.startswith(" ") else suggestion
                out.append(("class:ghost", ghost.replace("\r", "").replace("\n", " ")))
            out.append(("", "\n"))
        out.append(("", "\n"))

        hints = []
        if suggestion:
            hints.append(("Tab", "accept"))
        hints += [("Enter", "classify"), ("Alt+Enter", "newline")]
        if text:
            hints.append(("Ctrl+U", "clear"))
        hints.append(("Ctrl+C", "quit"))
        out.append(("", " "))
        for i, (key, action) in enumerate(hints):
            if i:
                out.append(("class:dim", "  ·  "))
            out += [("class:key", key), ("class:dim", f" {action}")]
        out += [("", "\n"), ("class:dim", rule)]

        if self.report is not None:
            out += render_report(self.report, rule)
        elif text:
            out += [("", "\n"), ("class:dim", " Press Enter to classify this prompt\n")]
        else:
            out += [
                ("", "\n"),
                ("class:dim", " Start typing a prompt to classify...\n"),
                ("", "\n"),
                ("class:dim", " The autocomplete model will suggest completions as you type.\n"),
                ("class:dim", " Press Tab to accept a suggestion, Enter to classify.\n"),
            ]

        status = self.message
        if not status and coord.status is SuggestionStatus.GENERATING:
            status = "generating..."
        elif not status and coord.status is SuggestionStatus.READY:
            status = "Tab to accept"
        if status:
            out += [("", "\n"), ("class:dim", f" {status}\n")]
        return out

    async def run_async(self) -> None:
        try:
            await self.app.run_async()
        finally:
            await self.coordinator.aclose()


def main(models_dir: str | None = None, num_threads: int = 0):
    if not sys.stdin.isatty():
        raise RuntimeError("knowmatic requires a TTY terminal.")

    from knowmatic.api import get_classifier, get_classifier_tokenizer
    from knowmatic.model_store import CLASSIFIERS, resolve_models_dir

    directory = resolve_models_dir(models_dir)
    print(f"Loading models from {directory} ...")
    get_classifier_tokenizer(directory)
    for task in CLASSIFIERS:
        get_classifier(directory, task, num_threads)
        print(f"  loaded {task} classifier")
    autocompleter = Autocompleter.load(directory, num_threads)
    print(f"All models loaded ({len(CLASSIFIERS)} classifiers + autocomplete from {os.path.basename(directory)})")

    classify_fn = functools.partial(analyze, models_dir=directory, num_threads=num_threads)
    asyncio.run(KnowmaticApp(autocompleter, classify_fn).run_async())
    print("Goodbye.")
