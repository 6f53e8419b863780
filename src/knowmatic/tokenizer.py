# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""
Byte-level BPE tokenizer.

Loads a ``tokenizer.json`` (vocabulary, merge list, added tokens) and turns
text into token ids for the classifiers and the autocomplete model, and ids
back into text.  Every byte sequence is representable: text is split into
word-like spans, each span's UTF-8 bytes are mapped to printable code points
and merged pairwise by rank.
"""

import functools
import json
import logging
import os
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import NamedTuple

import regex as re

from knowmatic.errors import LoadError

log = logging.getLogger(__name__)

# GPT-2 family pre-tokenization; text outside every alternative is dropped.
PRETOKENIZE_PATTERN = (
    r"'(?:[sdmt]|ll|ve|re)|"
    r" ?\p{L}+|"
    r" ?\p{N}+|"
    r" ?[^\s\p{L}\p{N}]+|"
    r"[\r\n]\s{0,3}|"
    r"\s+$"
)

_PRETOKENIZE_RE = re.compile(PRETOKENIZE_PATTERN)

DEFAULT_MAX_LENGTH = 512


@functools.lru_cache(maxsize=None)
def bytes_to_unicode() -> Mapping[int, str]:
    """Return the byte -> printable character table.

    Printable latin-1 bytes map to themselves; the other 68 bytes are shifted
    to code points 256 and up, in byte order.
    """
    bs = (
        list(range(ord("!"), ord("~") + 1))
        + list(range(ord("¡"), ord("¬") + 1))
        + list(range(ord("®"), ord("ÿ") + 1))
    )
    cs = bs[:]
    n = 0
    for b in range(256):
        if b not in bs:
            bs.append(b)
            cs.append(256 + n)
            n += 1
    return MappingProxyType({b: chr(c) for b, c in zip(bs, cs)})


@functools.lru_cache(maxsize=None)
def unicode_to_bytes() -> Mapping[str, int]:
    """Inverse of :func:`bytes_to_unicode`."""
    return MappingProxyType({c: b for b, c in bytes_to_unicode().items()})


@dataclass(frozen=True)
class SpecialTokens:
    pad: int = 0
    unk: int = 1
    bos: int = 2
    eos: int = 3

    def ids(self) -> frozenset[int]:
        return frozenset((self.pad, self.unk, self.bos, self.eos))


_SPECIAL_TOKEN_NAMES = {"<pad>": "pad", "<unk>": "unk", "<bos>": "bos", "<eos>": "eos"}


class Encoding(NamedTuple):
    input_ids: list[int]
    attention_mask: list[int]


class Tokenizer:
    """Byte-level BPE tokenizer backed by an immutable vocabulary and merge table."""

    def __init__(
        self,
        vocab: Mapping[str, int],
        merges: Iterable[tuple[str, str]],
        special_tokens: SpecialTokens | None = None,
    ):
        self._vocab: dict[str, int] = dict(vocab)
        self._reverse_vocab: dict[int, str] = {i: t for t, i in self._vocab.items()}
        self._merges: dict[tuple[str, str], int] = {}
        for rank, pair in enumerate(merges):
            self._merges.setdefault(tuple(pair), rank)
        self._special = special_tokens or SpecialTokens()
        self._byte_encoder = bytes_to_unicode()
        self._byte_decoder = unicode_to_bytes()
        # Span -> symbols; safe to memoise because the tables never change.
        self._bpe_cached = functools.lru_cache(maxsize=16384)(self._bpe)

    @classmethod
    def from_file(cls, path: str) -> "Tokenizer":
        """Load a Hugging Face style ``tokenizer.json``.

        Raises ``LoadError`` if the file is missing or unreadable, has no
        ``model.vocab`` object, or has malformed merges or added tokens.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise LoadError("Tokenizer file not found", path=path) from e
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            raise LoadError(f"Could not read tokenizer file: {e}", path=path) from e

        model = data.get("model") if isinstance(data, dict) else None
        if not isinstance(model, dict) or not isinstance(model.get("vocab"), dict):
            raise LoadError("Tokenizer file has no model.vocab", path=path)

        vocab = model["vocab"]
        added_tokens = data.get("added_tokens") or []
        if not isinstance(added_tokens, list):
            raise LoadError("Tokenizer added_tokens must be a list", path=path)
        try:
            merges = [_parse_merge(m) for m in model.get("merges") or []]
            special = _resolve_special_tokens(vocab, added_tokens)
        except (AttributeError, TypeError, ValueError) as e:
            raise LoadError(f"Malformed tokenizer file: {e}", path=path) from e
        log.debug(
            "Loaded tokenizer %s: %d tokens, %d merges, specials=%s",
            os.path.basename(path),
            len(vocab),
            len(merges),
            special,
        )
        return cls(vocab, merges, special)

    # -- properties ----------------------------------------------------------

    @property
    def vocab_size(self) -> int:
        return len(self._vocab)

    def get_special_tokens(self) -> SpecialTokens:
        return self._special

    # -- encoding ------------------------------------------------------------

    def encode(self, text: str, max_length: int = DEFAULT_MAX_LENGTH) -> Encoding:
        """Encode *text* into a fixed window of ``max_length`` ids.

        The sequence is ``[bos] + tokens + [eos]``, truncated to ``max_length``
        and right-padded with the pad id.  The mask is 1 for real positions.
        """
        ids = [self._special.bos, *self._tokenize(text), self._special.eos]
        ids = ids[:max_length]
        mask = [1] * len(ids)
        pad = max_length - len(ids)
        ids.extend([self._special.pad] * pad)
        mask.extend([0] * pad)
        return Encoding(ids, mask)

    def encode_for_generation(self, text: str) -> list[int]:
        """Encode *text* as a variable-length, bos-prefixed prompt."""
        return [self._special.bos, *self._tokenize(text)]

    def _tokenize(self, text: str) -> list[int]:
        ids: list[int] = []
        unk = self._special.unk
        for span in _PRETOKENIZE_RE.findall(text):
            encoded = "".join(self._byte_encoder[b] for b in span.encode("utf-8"))
            ids.extend(self._vocab.get(sym, unk) for sym in self._bpe_cached(encoded))
        return ids

    def _bpe(self, token: str) -> tuple[str, ...]:
        if token in self._vocab:
            return (token,)
        word = list(token)
        if len(word) < 2:
            return tuple(word)

        ranks = self._merges
        while len(word) > 1:
            best = None
            best_rank = None
            for pair in zip(word, word[1:]):
                rank = ranks.get(pair)
                if rank is not None and (best_rank is None or rank < best_rank):
                    best, best_rank = pair, rank
            if best is None:
                break

            first, second = best
            merged: list[str] = []
            i = 0
            while i < len(word):
                if i < len(word) - 1 and word[i] == first and word[i + 1] == second:
                    merged.append(first + second)
                    i += 2
                else:
                    merged.append(word[i])
                    i += 1
            word = merged
        return tuple(word)

    # -- decoding ------------------------------------------------------------

    def decode_bytes(self, ids: Sequence[int]) -> bytes:
        """Map ids back to raw bytes, skipping special and unknown ids."""
        skip = self._special.ids()
        out = bytearray()
        for token_id in ids:
            if token_id in skip:
                continue
            token = self._reverse_vocab.get(token_id)
            if token is None:
                continue
            for ch in token:
                b = self._byte_decoder.get(ch)
                if b is not None:
                    out.append(b)
        return bytes(out)

    def decode(self, ids: Sequence[int]) -> str:
        return self.decode_bytes(ids).decode("utf-8", errors="replace")


def _parse_merge(merge) -> tuple[str, str]:
    if isinstance(merge, str):
        parts = merge.split(" ")
    else:
        parts = list(merge)
    if len(parts) != 2:
        raise ValueError(f"Malformed merge entry: {merge!r}")
    return parts[0], parts[1]


def _resolve_special_tokens(vocab: Mapping[str, int], added_tokens: list) -> SpecialTokens:
    found: dict[str, int] = {}
    for content, field in _SPECIAL_TOKEN_NAMES.items():
        if content in vocab:
            found[field] = vocab[content]
    for token in added_tokens:
        field = _SPECIAL_TOKEN_NAMES.get(token.get("content"))
        if field is not None and "id" in token:
            found[field] = int(token["id"])
    return SpecialTokens(**found)
