"""Tests for the fixed-capacity sequence buffer."""
from __future__ import annotations

import unittest
from unittest import mock

import torch

from cadence.cache.tensor import SEQ_DIM, SequenceBuffer
from cadence.config.kvcache import CacheStrategy
from cadence.errors import CapacityExceeded


def _positions(start: int, count: int, *, batch: int = 1, heads: int = 2, dim: int = 3) -> torch.Tensor:
    """Build (B, H, T, D) entries whose values equal their logical position."""
    values = torch.arange(start, start + count, dtype=torch.float32)
    return values.view(1, 1, count, 1).expand(batch, heads, count, dim).clone()


class TestSequenceBufferAppend(unittest.TestCase):
    """Tests for appending entries."""

    def setUp(self) -> None:
        self.buf = SequenceBuffer(
            batch_size=1, heads=2, capacity=8, dim=3, device=torch.device("cpu")
        )

    def test_starts_empty(self) -> None:
        """A new buffer has zero length."""
        self.assertEqual(self.buf.len, 0)
        self.assertEqual(self.buf.capacity, 8)

    def test_append_returns_valid_prefix(self) -> None:
        """append returns every entry written so far."""
        self.buf.append(_positions(0, 3))
        out = self.buf.append(_positions(3, 2))

        self.assertEqual(self.buf.len, 5)
        self.assertEqual(out.shape, (1, 2, 5, 3))
        self.assertTrue(torch.equal(out, _positions(0, 5)))

    def test_append_to_capacity(self) -> None:
        """Filling the buffer exactly is allowed."""
        self.buf.append(_positions(0, 8))
        self.assertEqual(self.buf.len, 8)

    def test_overflow_raises(self) -> None:
        """Appending past capacity raises CapacityExceeded."""
        self.buf.append(_positions(0, 6))
        with self.assertRaises(CapacityExceeded) as ctx:
            self.buf.append(_positions(6, 3))
        self.assertEqual(ctx.exception.capacity, 8)
        self.assertEqual(self.buf.len, 6)

    def test_shape_mismatch_raises(self) -> None:
        """Entries with the wrong head count are rejected."""
        with self.assertRaises(ValueError):
            self.buf.append(torch.zeros(1, 3, 1, 3))

    def test_reset(self) -> None:
        """reset forgets all entries."""
        self.buf.append(_positions(0, 4))
        self.buf.reset()
        self.assertEqual(self.buf.len, 0)
        self.assertEqual(self.buf.get().shape[2], 0)


class TestSequenceBufferEvict(unittest.TestCase):
    """Tests for eviction with both strategies."""

    def _buffer(self, strategy: CacheStrategy, *, batch: int = 1, heads: int = 2) -> SequenceBuffer:
        return SequenceBuffer(
            batch_size=batch,
            heads=heads,
            capacity=8,
            dim=3,
            device=torch.device("cpu"),
            strategy=strategy,
        )

    def test_evict_keeps_most_recent(self) -> None:
        """After eviction the survivors sit at the front, in order."""
        for strategy in CacheStrategy:
            with self.subTest(strategy=strategy):
                buf = self._buffer(strategy)
                buf.append(_positions(0, 7))
                buf.evict(3)
                self.assertEqual(buf.len, 4)
                self.assertTrue(torch.equal(buf.get(), _positions(3, 4)))

    def test_strategies_match(self) -> None:
        """Shift and Shrink leave identical contents for any eviction size."""
        for n in range(1, 8):
            with self.subTest(n=n):
                shift = self._buffer(CacheStrategy.SHIFT, batch=2, heads=3)
                shrink = self._buffer(CacheStrategy.SHRINK, batch=2, heads=3)
                data = torch.randn(2, 3, 8, 3)
                shift.append(data)
                shrink.append(data)
                shift.evict(n)
                shrink.evict(n)
                self.assertTrue(torch.equal(shift.get(), shrink.get()))
                self.assertTrue(torch.equal(shift.get(), data[:, :, n:]))

    def test_shift_reuses_storage(self) -> None:
        """Shift eviction does not allocate a new buffer."""
        buf = self._buffer(CacheStrategy.SHIFT)
        before = buf.buf.data_ptr()
        buf.append(_positions(0, 8))
        buf.evict(1)
        self.assertEqual(buf.buf.data_ptr(), before)

    def test_shift_copies_are_constant(self) -> None:
        """Single-position evictions from a full buffer take two copies."""
        buf = SequenceBuffer(
            batch_size=1,
            heads=2,
            capacity=256,
            dim=3,
            device=torch.device("cpu"),
            strategy=CacheStrategy.SHIFT,
        )
        buf.append(_positions(0, 256))
        scratch = buf.scratch
        assert scratch is not None
        original = torch.Tensor.copy_
        calls: list[int] = []

        def counting_copy(self: torch.Tensor, src: torch.Tensor, non_blocking: bool = False) -> torch.Tensor:
            calls.append(int(src.size(SEQ_DIM)))
            return original(self, src, non_blocking)

        with mock.patch.object(torch.Tensor, "copy_", counting_copy):
            buf.evict(1)

        self.assertEqual(calls, [255, 255])
        self.assertIs(buf.scratch, scratch)
        self.assertTrue(torch.equal(buf.get(), _positions(1, 255)))

    def test_shrink_has_no_scratch(self) -> None:
        self.assertIsNone(self._buffer(CacheStrategy.SHRINK).scratch)

    def test_shrink_allocates(self) -> None:
        """Shrink eviction swaps in fresh storage."""
        buf = self._buffer(CacheStrategy.SHRINK)
        before = buf.buf.data_ptr()
        buf.append(_positions(0, 8))
        buf.evict(1)
        self.assertNotEqual(buf.buf.data_ptr(), before)

    def test_evict_everything(self) -> None:
        """Evicting the full length empties the buffer."""
        buf = self._buffer(CacheStrategy.SHIFT)
        buf.append(_positions(0, 5))
        buf.evict(5)
        self.assertEqual(buf.len, 0)

    def test_evict_too_many_raises(self) -> None:
        """Evicting more than the length is a programming error."""
        buf = self._buffer(CacheStrategy.SHIFT)
        buf.append(_positions(0, 2))
        with self.assertRaises(ValueError):
            buf.evict(3)

    def test_evict_zero_is_noop(self) -> None:
        buf = self._buffer(CacheStrategy.SHIFT)
        buf.append(_positions(0, 2))
        buf.evict(0)
        self.assertEqual(buf.len, 2)

    def test_rolling_window(self) -> None:
        """Repeated evict+append keeps the most recent capacity entries."""
        for strategy in CacheStrategy:
            with self.subTest(strategy=strategy):
                buf = self._buffer(strategy)
                written = 0
                for step in (3, 4, 2, 5, 1, 1, 7):
                    overflow = buf.len + step - buf.capacity
                    if overflow > 0:
                        buf.evict(overflow)
                    buf.append(_positions(written, step))
                    written += step
                expected_len = min(written, buf.capacity)
                self.assertEqual(buf.len, expected_len)
                self.assertTrue(
                    torch.equal(buf.get(), _positions(written - expected_len, expected_len))
                )


if __name__ == "__main__":
    unittest.main()
