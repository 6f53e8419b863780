# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""
Model metadata.

Each ONNX model ships with a JSON sidecar: ``metadata.json`` for the
classifiers and ``sft_metadata.json`` for the autocomplete model.  These
describe the vocabulary size, context window, labels and default sampling
parameters.
"""

import json
from dataclasses import dataclass, field, fields
from typing import Any

from knowmatic.errors import LoadError
from knowmatic.tokenizer import SpecialTokens

# Used when the metadata omits generation_defaults (or some of its keys).
DEFAULT_GENERATION_PARAMS = {
    "max_new_tokens": 32,
    "temperature": 0.6,
    "top_k": 50,
}


def _read_json(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise LoadError("Metadata file not found", path=path) from e
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        raise LoadError(f"Could not read metadata: {e}", path=path) from e
    if not isinstance(data, dict):
        raise LoadError("Metadata must be a JSON object", path=path)
    return data


@dataclass
class GenerativeMetadata:
    """Metadata of the autocomplete (causal LM) model."""

    vocab_size: int
    max_length: int = 0
    model_type: str = ""
    generation_defaults: dict = field(
        default_factory=lambda: dict(DEFAULT_GENERATION_PARAMS)
    )
    special_tokens: SpecialTokens = field(default_factory=SpecialTokens)

    @classmethod
    def from_json(cls, path: str) -> "GenerativeMetadata":
        raw = _read_json(path)
        try:
            vocab_size = int(raw["vocab_size"])
            defaults = dict(DEFAULT_GENERATION_PARAMS)
            for key, value in (raw.get("generation_defaults") or {}).items():
                if key in defaults:
                    defaults[key] = type(defaults[key])(value)
            known = {f.name for f in fields(SpecialTokens)}
            special = SpecialTokens(
                **{
                    k: int(v)
                    for k, v in (raw.get("special_tokens") or {}).items()
                    if k in known
                }
            )
        except KeyError as e:
            raise LoadError(f"Metadata missing required field {e}", path=path) from e
        except (AttributeError, TypeError, ValueError) as e:
            raise LoadError(f"Malformed metadata: {e}", path=path) from e

        return cls(
            vocab_size=vocab_size,
            max_length=int(raw.get("max_length") or 0),
            model_type=str(raw.get("model_type", "")),
            generation_defaults=defaults,
            special_tokens=special,
        )


@dataclass
class ClassifierMetadata:
    """Metadata of a sequence classifier."""

    id_to_label: dict[int, str]
    max_length: int = 512
    vocab_size: int = 0

    @property
    def num_classes(self) -> int:
        return len(self.id_to_label)

    def label(self, class_id: int) -> str:
        return self.id_to_label.get(class_id, str(class_id))

    @classmethod
    def from_json(cls, path: str) -> "ClassifierMetadata":
        raw = _read_json(path)
        try:
            if "id_to_label" in raw:
                id_to_label = {int(k): str(v) for k, v in raw["id_to_label"].items()}
            else:
                id_to_label = {int(v): str(k) for k, v in raw["label_map"].items()}
        except KeyError as e:
            raise LoadError("Metadata has neither id_to_label nor label_map", path=path) from e
        except (AttributeError, TypeError, ValueError) as e:
            raise LoadError(f"Malformed label mapping: {e}", path=path) from e

        num_classes = raw.get("num_classes")
        if num_classes is not None and int(num_classes) != len(id_to_label):
            raise LoadError(
                f"num_classes={num_classes} but {len(id_to_label)} labels defined",
                path=path,
            )
        return cls(
            id_to_label=id_to_label,
            max_length=int(raw.get("max_length") or 512),
            vocab_size=int(raw.get("vocab_size") or 0),
        )
