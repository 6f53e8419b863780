# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
from ._autocomplete import Autocomplete
from ._classifier import Classifier
from ._server import Server

__all__ = ["Server", "Autocomplete", "Classifier"]
