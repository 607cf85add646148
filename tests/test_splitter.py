"""Tests for buffer splitting and chunk size clamping."""

import math

import pytest

from staging.splitter import count_chunks, effective_chunk_size, split_buffer, split_into_chunks


class TestEffectiveChunkSize:

    def test_missing_request_uses_ceiling(self):
        assert effective_chunk_size(None, 50) == 50
        assert effective_chunk_size(0, 50) == 50

    def test_request_above_ceiling_is_clamped(self):
        assert effective_chunk_size(1000, 50) == 50

    def test_request_below_ceiling_is_kept(self):
        assert effective_chunk_size(20, 50) == 20


class TestSplitIntoChunks:

    def test_130_bytes_by_50(self, payload_130):
        chunks = split_buffer(payload_130, 50)

        assert [chunk.size for chunk in chunks] == [50, 50, 30]
        assert [chunk.index for chunk in chunks] == [0, 1, 2]
        assert b"".join(chunk.data for chunk in chunks) == payload_130

    def test_exact_multiple_keeps_full_last_chunk(self):
        chunks = split_buffer(b"x" * 100, 50)

        assert [chunk.size for chunk in chunks] == [50, 50]

    def test_empty_buffer_yields_nothing(self):
        assert split_buffer(b"", 50) == []

    def test_chunk_larger_than_buffer(self):
        chunks = split_buffer(b"abc", 50)

        assert len(chunks) == 1
        assert chunks[0].data == b"abc"

    @pytest.mark.parametrize("size,chunk_size", [(1, 1), (7, 3), (130, 50), (1024, 100), (999, 1000)])
    def test_chunk_count_matches_ceiling_division(self, size, chunk_size):
        data = bytes(range(256)) * (size // 256 + 1)
        data = data[:size]

        chunks = split_buffer(data, chunk_size)

        assert len(chunks) == math.ceil(size / chunk_size) == count_chunks(size, chunk_size)
        assert b"".join(chunk.data for chunk in chunks) == data
        remainder = size % chunk_size
        assert chunks[-1].size == (remainder if remainder else chunk_size)

    def test_non_positive_chunk_size_raises(self):
        with pytest.raises(ValueError):
            list(split_into_chunks(b"abc", 0))
        with pytest.raises(ValueError):
            count_chunks(10, -1)
