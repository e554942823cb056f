"""
Tests for the stereo -> mono downmix
"""

import struct

import pytest

from audio_processor.audio_framer import stereo_to_mono


def stereo(*pairs):
    return b"".join(struct.pack("<hh", left, right) for left, right in pairs)


def mono_samples(data):
    return list(struct.unpack(f"<{len(data) // 2}h", data))


class TestStereoToMono:

    @pytest.mark.parametrize("length", [0, 1, 2, 3, 4, 5, 7, 8, 4001, 4096])
    def test_output_length(self, length):
        data = bytes(range(256)) * (length // 256 + 1)
        assert len(stereo_to_mono(data[:length])) == length // 4 * 2

    def test_averages_each_pair(self):
        result = stereo_to_mono(stereo((100, 200), (0, 0), (-300, -100)))
        assert mono_samples(result) == [150, 0, -200]

    def test_halves_round_away_from_zero(self):
        result = stereo_to_mono(stereo((1, 2), (-1, -2), (3, -4), (0, 1)))
        assert mono_samples(result) == [2, -2, -1, 1]

    def test_extremes_do_not_overflow(self):
        result = stereo_to_mono(stereo((32767, 32767), (-32768, -32768), (32767, -32768)))
        assert mono_samples(result) == [32767, -32768, -1]

    def test_trailing_partial_frame_is_dropped(self):
        data = stereo((10, 20), (30, 40)) + b"\x01\x02\x03"
        assert mono_samples(stereo_to_mono(data)) == [15, 35]

    def test_too_short_for_one_frame(self):
        assert stereo_to_mono(b"\x01\x02\x03") == b""
        assert stereo_to_mono(b"") == b""
