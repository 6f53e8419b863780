# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Knowmatic: local prompt classification and ghost-text autocomplete."""

__all__ = [
    "analyze",
    "autocomplete",
    "autocomplete_stream",
    "classify_code",
    "classify_difficulty",
    "classify_reasoning_effort",
    "Autocompleter",
    "AutocompleteEngine",
    "Tokenizer",
    "SuggestionCoordinator",
    "Server",
    "Autocomplete",
    "Classifier",
]

_API = {
    "analyze",
    "autocomplete",
    "autocomplete_stream",
    "classify_code",
    "classify_difficulty",
    "classify_reasoning_effort",
    "Autocompleter",
}


def __getattr__(name: str):
    if name in _API:
        from . import api

        return getattr(api, name)
    if name == "AutocompleteEngine":
        from .generation import AutocompleteEngine

        return AutocompleteEngine
    if name == "Tokenizer":
        from .tokenizer import Tokenizer

        return Tokenizer
    if name == "SuggestionCoordinator":
        from .coordinator import SuggestionCoordinator

        return SuggestionCoordinator
    if name == "Server":
        from .server._server import Server

        return Server
    if name == "Autocomplete":
        from .server._autocomplete import Autocomplete

        return Autocomplete
    if name == "Classifier":
        from .server._classifier import Classifier

        return Classifier
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
