# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""
Shared token decoding utility for incremental text output.

Used by the library stream API, the interactive client and the API server
to turn generated ids into text one token at a time.  Byte-level BPE tokens
can end in the middle of a multi-byte UTF-8 character, so bytes are fed
through an incremental UTF-8 decoder instead of decoding each token alone.
"""

import codecs


class IncrementalDecoder:
    """Decodes token IDs one at a time, holding back incomplete characters."""

    def __init__(self, tokenizer):
        self.tokenizer = tokenizer
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def decode(self, token_id: int) -> str:
        """Decode a single token ID to its text fragment.

        Returns ``""`` while a character is still incomplete; the full
        character is emitted with the token that completes it.
        """
        return self._utf8.decode(self.tokenizer.decode_bytes([token_id]))

    def flush(self) -> str:
        """Emit any trailing partial character as U+FFFD."""
        return self._utf8.decode(b"", final=True)

    def reset(self):
        """Reset state for a new generation sequence."""
        self._utf8.reset()
