"""
Grid Decoder Tests
==================

Tests for the streaming RLE decoder and level mapping.
"""

import numpy as np
import pytest

from swim_relay.decode.grid import DecoderState, GridDecoder, map_level
from swim_relay.models.frame import SpecialValues


def decode(text: str, size: int, special: SpecialValues = None, splits=None):
    """Decode text into a fresh buffer, optionally split at given offsets."""
    grid = np.zeros(size, dtype=np.int8)
    decoder = GridDecoder(grid, special or SpecialValues())
    if splits is None:
        decoder.feed(text)
    else:
        bounds = [0, *splits, len(text)]
        for start, end in zip(bounds, bounds[1:]):
            decoder.feed(text[start:end])
    decoder.finish()
    return grid.tolist(), decoder


class TestMapLevel:
    """Tests for map_level."""

    @pytest.mark.parametrize("value", [0, 1, 2, 3, 4, 5, 6])
    def test_levels_kept(self, value):
        assert map_level(value, SpecialValues()) == value

    @pytest.mark.parametrize("value", [7, 8, 9, 15])
    def test_default_sentinels_zeroed(self, value):
        assert map_level(value, SpecialValues()) == 0

    @pytest.mark.parametrize("value", [-1, -9999, 10, 42])
    def test_out_of_range_zeroed(self, value):
        assert map_level(value, SpecialValues()) == 0

    def test_custom_sentinel_inside_range(self):
        """A sentinel inside [0, 6] still maps to 0."""
        special = SpecialValues(attenuated=3, ap_detected=4, bad_value=5, no_coverage=6)
        assert map_level(3, special) == 0
        assert map_level(6, special) == 0
        assert map_level(2, special) == 2


class TestGridDecoder:
    """Tests for GridDecoder."""

    def test_reference_example(self):
        """'5,3 0,2 -1,1' into 3x2 yields [5,5,5,0,0,0]."""
        grid, decoder = decode("5,3 0,2 -1,1", 6)
        assert grid == [5, 5, 5, 0, 0, 0]
        assert decoder.filled == 6

    def test_overrun_stops_at_buffer_end(self):
        grid, decoder = decode("2,4 3,100 1,5", 6)
        assert grid == [2, 2, 2, 2, 3, 3]
        assert decoder.filled == 6
        assert decoder.full

    def test_under_specified_runs(self):
        """Fewer encoded cells than the buffer leaves the rest untouched."""
        grid, decoder = decode("4,2", 5)
        assert grid == [4, 4, 0, 0, 0]
        assert decoder.filled == 2

    def test_fragmentation_invariance(self):
        """Every possible split point gives the same grid."""
        text = "1,2 -5,1\n3,12\t6,1  0,3 15,2 2,1"
        expected, _ = decode(text, 20)
        for i in range(len(text) + 1):
            grid, _ = decode(text, 20, splits=[i])
            assert grid == expected, f"split at {i}"

    def test_single_character_fragments(self):
        text = "1,2 2,2 3,2"
        grid = np.zeros(6, dtype=np.int8)
        decoder = GridDecoder(grid, SpecialValues())
        for c in text:
            decoder.feed(c)
        decoder.feed("")
        decoder.finish()
        assert grid.tolist() == [1, 1, 2, 2, 3, 3]

    def test_multi_digit_counts_across_fragments(self):
        grid, _ = decode("6,12 1,1", 13, splits=[3])
        assert grid == [6] * 12 + [1]

    def test_malformed_token_skipped(self):
        """A broken token is dropped and decoding resumes."""
        grid, decoder = decode("1,2 9x,3 5a,1 2,2", 6)
        assert grid == [1, 1, 2, 2, 0, 0]
        assert decoder.filled == 4

    def test_garbage_in_count_aborts_token(self):
        grid, _ = decode("1,2x 3,1", 3)
        assert grid == [3, 0, 0]

    def test_whitespace_before_count_digit_ignored(self):
        grid, _ = decode("2, 3 1,1", 4)
        assert grid == [2, 2, 2, 1]

    def test_comma_without_value_digits(self):
        grid, _ = decode("-,3 4,1", 2)
        assert grid == [4, 0]

    def test_pending_value_without_count_discarded(self):
        grid, decoder = decode("3,2 4", 4)
        assert grid == [3, 3, 0, 0]
        assert decoder.state is DecoderState.IDLE

    def test_pending_comma_without_count_discarded(self):
        grid, decoder = decode("3,2 4,", 4)
        assert grid == [3, 3, 0, 0]
        assert decoder.filled == 2

    def test_sentinels_written_as_zero(self):
        special = SpecialValues(attenuated=70, ap_detected=80, bad_value=90, no_coverage=150)
        grid, _ = decode("70,1 80,1 90,1 150,1 5,1", 5, special=special)
        assert grid == [0, 0, 0, 0, 5]

    def test_feed_after_full_is_noop(self):
        grid = np.zeros(2, dtype=np.int8)
        decoder = GridDecoder(grid, SpecialValues())
        decoder.feed("1,2 ")
        decoder.feed("3,5 ")
        decoder.finish()
        assert grid.tolist() == [1, 1]
        assert decoder.filled == 2

    def test_decoder_without_target_drops_input(self):
        decoder = GridDecoder(None)
        decoder.feed("1,5 2,5")
        decoder.finish()
        assert decoder.filled == 0
        assert not decoder.has_target

    def test_zero_count_run(self):
        grid, decoder = decode("1,0 2,1", 2)
        assert grid == [2, 0]
        assert decoder.filled == 1

    def test_large_random_stream_split_anywhere(self):
        """Random runs decode identically when fed in random-size chunks."""
        rng = np.random.default_rng(7)
        runs = [(int(v), int(c)) for v, c in zip(rng.integers(-3, 20, 300), rng.integers(0, 40, 300))]
        text = " ".join(f"{v},{c}" for v, c in runs)
        size = sum(c for _, c in runs) - 17

        expected, _ = decode(text, size)

        cuts = sorted(set(int(x) for x in rng.integers(0, len(text), 60)))
        grid, decoder = decode(text, size, splits=cuts)

        assert grid == expected
        assert decoder.filled == size
