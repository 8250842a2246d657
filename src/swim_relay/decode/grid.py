"""
Grid Decoder
============

Streaming decoder for the run-length encoded precipitation grid.

The encoded payload is a whitespace-separated sequence of runs:

    <value>,<count> <value>,<count> ...

where each run means "count consecutive cells of level map(value)".
Values may be negative; counts are unsigned.

The decoder is a character-at-a-time state machine so a token may start in
one text fragment and finish in the next. It writes into a pre-sized buffer
owned by the frame and never grows it.

Design Rules:
    - No fatal-error path: malformed tokens are skipped, decoding resumes
      at the next token boundary
    - Runs that would overrun the buffer are cut at the buffer end
    - Once the buffer is full, further input is ignored
    - Sentinel and out-of-range values are written as level 0, so "no data"
      and "zero precipitation" are indistinguishable downstream
"""

import logging
from enum import Enum
from typing import Optional

import numpy as np

from swim_relay.models.frame import MAX_LEVEL, MIN_LEVEL, SpecialValues


logger = logging.getLogger(__name__)


WHITESPACE = frozenset(" \n\r\t")
DIGITS = frozenset("0123456789")


class DecoderState(str, Enum):
    """Token position of the grid decoder."""

    IDLE = "IDLE"
    VALUE = "VALUE"
    COUNT = "COUNT"


def map_level(value: int, special: SpecialValues) -> int:
    """
    Map an encoded value to a precipitation level.

    Args:
        value: Decoded run value
        special: Sentinel codes in effect for the frame

    Returns:
        0 for any sentinel or any value outside [0, 6], else the value
    """
    if value in special:
        return 0
    if value < MIN_LEVEL or value > MAX_LEVEL:
        return 0
    return value


class GridDecoder:
    """
    Stateful RLE decoder fed with arbitrary text fragments.

    Attributes:
        special: Sentinel codes captured when the decoder was created
        state: Current token position
        filled: Number of cells written so far

    Example:
        grid = np.zeros(6, dtype=np.int8)
        decoder = GridDecoder(grid, SpecialValues())
        decoder.feed("5,3 0,")
        decoder.feed("2 -1,1")
        decoder.finish()
        # grid == [5, 5, 5, 0, 0, 0]
    """

    def __init__(
        self,
        out: Optional[np.ndarray],
        special: Optional[SpecialValues] = None,
    ) -> None:
        """
        Initialize decoder.

        Args:
            out: Pre-allocated output buffer. None means no target yet;
                all input is then dropped.
            special: Sentinel codes (defaults if omitted)
        """
        self._out = out
        self._capacity = 0 if out is None else len(out)
        self.special = special or SpecialValues()

        self._pos = 0
        self.state = DecoderState.IDLE
        self._negative = False
        self._saw_digit = False
        self._value = 0
        self._count = 0

    @property
    def filled(self) -> int:
        """Number of cells written so far."""
        return self._pos

    @property
    def has_target(self) -> bool:
        """Whether the decoder writes into a buffer."""
        return self._out is not None

    @property
    def full(self) -> bool:
        """Whether no buffer space remains."""
        return self._pos >= self._capacity

    def feed(self, chunk: str) -> None:
        """
        Consume one text fragment.

        Args:
            chunk: Any slice of the encoded text, including empty strings
                and fragments that split a token mid-digit
        """
        if not chunk or self.full:
            return

        for c in chunk:
            if self.state is DecoderState.IDLE:
                self._on_idle(c)
            elif self.state is DecoderState.VALUE:
                self._on_value(c)
            else:
                self._on_count(c)
                if self.full:
                    return

    def finish(self) -> None:
        """
        Flush at end of stream.

        A count with at least one digit is emitted; a value with no count is
        discarded. The state machine is reset.
        """
        if self.state is DecoderState.COUNT and self._saw_digit:
            self._emit_run(self._value, self._count)
        self._reset_token()

    # -------------------------------------------------------------------------
    # State handlers
    # -------------------------------------------------------------------------

    def _on_idle(self, c: str) -> None:
        if c in WHITESPACE:
            return
        if c == "-":
            self._open_value(negative=True)
        elif c in DIGITS:
            self._open_value(negative=False)
            self._saw_digit = True
            self._value = ord(c) - 48
        # Anything else is skipped; stay idle

    def _on_value(self, c: str) -> None:
        if c in DIGITS:
            self._saw_digit = True
            self._value = self._value * 10 + (ord(c) - 48)
        elif c == "," and self._saw_digit:
            if self._negative:
                self._value = -self._value
            self.state = DecoderState.COUNT
            self._count = 0
            self._saw_digit = False
        else:
            # Malformed token, resynchronize
            self._reset_token()

    def _on_count(self, c: str) -> None:
        if c in DIGITS:
            self._saw_digit = True
            self._count = self._count * 10 + (ord(c) - 48)
        elif c in WHITESPACE:
            if self._saw_digit:
                self._emit_run(self._value, self._count)
                self._reset_token()
            # whitespace before the first count digit is not a terminator
        else:
            self._reset_token()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _open_value(self, negative: bool) -> None:
        self.state = DecoderState.VALUE
        self._negative = negative
        self._saw_digit = False
        self._value = 0
        self._count = 0

    def _reset_token(self) -> None:
        self.state = DecoderState.IDLE
        self._negative = False
        self._saw_digit = False

    def _emit_run(self, value: int, count: int) -> None:
        take = min(count, self._capacity - self._pos)
        if take <= 0:
            return
        self._out[self._pos:self._pos + take] = map_level(value, self.special)
        self._pos += take

    def __repr__(self) -> str:
        return (
            f"GridDecoder(filled={self._pos}/{self._capacity}, "
            f"state={self.state.value})"
        )
