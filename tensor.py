# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""TensorBuffer — the typed, shaped buffer passed between pipeline stages.

A :class:`TensorBuffer` wraps a read-only :class:`numpy.ndarray`.  Its shape
and element type are fixed at construction; every operation returns a new
buffer.  Consumers validate shapes with :meth:`TensorBuffer.expect_shape`
before use and fail fast with :class:`~latentkit.errors.InvalidConfiguration`
on mismatch.
"""
from __future__ import annotations

import numpy as np
from typing import Any, Optional, Sequence

from .dtype import dtype as Dtype
from .errors import InvalidConfiguration


class TensorBuffer:
    """Immutable N-dimensional numeric buffer."""

    __slots__ = ('_data',)

    # ------------------------------------------------------------------ #
    #  Construction                                                      #
    # ------------------------------------------------------------------ #

    def __init__(self, data: Any, dtype: Dtype | np.dtype | None = None):
        if isinstance(data, TensorBuffer):
            arr = data._data.copy()
        else:
            arr = np.array(data, copy=True)

        if dtype is not None:
            if isinstance(dtype, Dtype):
                arr = arr.astype(dtype.to_numpy())
            else:
                arr = arr.astype(dtype)

        # Validates the element type
        Dtype.from_numpy(arr.dtype)
        arr.setflags(write=False)
        self._data: np.ndarray = arr

    @staticmethod
    def _wrap(data: np.ndarray) -> 'TensorBuffer':
        """Adopt *data* without copying.  The caller must not keep writing it."""
        t = TensorBuffer.__new__(TensorBuffer)
        data = np.asarray(data)
        if data.flags.writeable:
            data.setflags(write=False)
        t._data = data
        return t

    # ------------------------------------------------------------------ #
    #  Properties                                                        #
    # ------------------------------------------------------------------ #

    @property
    def shape(self) -> tuple:
        return tuple(self._data.shape)

    @property
    def ndim(self) -> int:
        return self._data.ndim

    @property
    def dtype(self) -> Dtype:
        return Dtype.from_numpy(self._data.dtype)

    @property
    def strides(self) -> tuple:
        """Strides in elements (not bytes)."""
        item = self._data.itemsize
        return tuple(s // item for s in self._data.strides)

    @property
    def size(self) -> int:
        return int(self._data.size)

    @property
    def nbytes(self) -> int:
        return int(self._data.nbytes)

    def numpy(self) -> np.ndarray:
        """Read-only view of the underlying array."""
        return self._data

    def __array__(self, dtype=None, copy=None):
        if dtype is not None:
            return self._data.astype(dtype)
        if copy:
            return self._data.copy()
        return self._data

    def __len__(self) -> int:
        return self._data.shape[0]

    def __repr__(self) -> str:
        return (f"TensorBuffer(shape={self.shape}, "
                f"dtype={self.dtype.name})")

    # ------------------------------------------------------------------ #
    #  Validation                                                        #
    # ------------------------------------------------------------------ #

    def expect_shape(self, shape: Sequence[Optional[int]],
                     what: str = 'tensor') -> 'TensorBuffer':
        """Raise ``InvalidConfiguration`` unless the shape matches.

        ``None`` entries in *shape* match any size.  Returns *self* so the
        call can be chained.
        """
        expected = tuple(shape)
        actual = self.shape
        ok = len(expected) == len(actual) and all(
            e is None or e == a for e, a in zip(expected, actual))
        if not ok:
            pretty = tuple('*' if e is None else e for e in expected)
            raise InvalidConfiguration(
                f"{what} has shape {actual}, expected {pretty}")
        return self

    def expect_dtype(self, dtype: Dtype, what: str = 'tensor') -> 'TensorBuffer':
        if self.dtype is not dtype:
            raise InvalidConfiguration(
                f"{what} has dtype {self.dtype.name}, expected {dtype.name}")
        return self

    # ------------------------------------------------------------------ #
    #  Shape manipulation                                                #
    # ------------------------------------------------------------------ #

    def astype(self, dtype: Dtype | np.dtype) -> 'TensorBuffer':
        np_dtype = dtype.to_numpy() if isinstance(dtype, Dtype) else np.dtype(dtype)
        if np_dtype == self._data.dtype:
            return self
        return TensorBuffer._wrap(self._data.astype(np_dtype))

    def reshape(self, *shape) -> 'TensorBuffer':
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = tuple(shape[0])
        try:
            return TensorBuffer._wrap(self._data.reshape(shape))
        except ValueError as exc:
            raise InvalidConfiguration(
                f"cannot reshape {self.shape} to {shape}") from exc

    def split(self, sections: int, axis: int = 0) -> list:
        """Split into *sections* equal parts along *axis*."""
        if self._data.shape[axis] % sections != 0:
            raise InvalidConfiguration(
                f"cannot split axis {axis} of size "
                f"{self._data.shape[axis]} into {sections} equal parts")
        return [TensorBuffer._wrap(part)
                for part in np.split(self._data, sections, axis=axis)]

    def repeat(self, repeats: int, axis: int = 0) -> 'TensorBuffer':
        """Tile the buffer *repeats* times along *axis* (batch duplication)."""
        return TensorBuffer._wrap(
            np.concatenate([self._data] * repeats, axis=axis))

    def __getitem__(self, index) -> 'TensorBuffer':
        return TensorBuffer._wrap(np.asarray(self._data[index]))

    # ------------------------------------------------------------------ #
    #  Elementwise arithmetic                                            #
    # ------------------------------------------------------------------ #

    def _operand(self, other) -> np.ndarray | float:
        if isinstance(other, TensorBuffer):
            if other.shape != self.shape:
                raise InvalidConfiguration(
                    f"shape mismatch: {self.shape} vs {other.shape}")
            return other._data
        if isinstance(other, (int, float, np.floating, np.integer)):
            return other
        return NotImplemented

    def _result(self, data: np.ndarray) -> 'TensorBuffer':
        return TensorBuffer._wrap(
            np.asarray(data).astype(self._data.dtype, copy=False))

    def __add__(self, other):
        b = self._operand(other)
        if b is NotImplemented:
            return NotImplemented
        return self._result(self._data + b)

    def __radd__(self, other):
        return self.__add__(other)

    def __sub__(self, other):
        b = self._operand(other)
        if b is NotImplemented:
            return NotImplemented
        return self._result(self._data - b)

    def __rsub__(self, other):
        b = self._operand(other)
        if b is NotImplemented:
            return NotImplemented
        return self._result(b - self._data)

    def __mul__(self, other):
        b = self._operand(other)
        if b is NotImplemented:
            return NotImplemented
        return self._result(self._data * b)

    def __rmul__(self, other):
        return self.__mul__(other)

    def __truediv__(self, other):
        b = self._operand(other)
        if b is NotImplemented:
            return NotImplemented
        return self._result(self._data / b)

    def __neg__(self):
        return self._result(-self._data)

    def clip(self, lo: float, hi: float) -> 'TensorBuffer':
        return self._result(np.clip(self._data, lo, hi))

    def allclose(self, other: 'TensorBuffer', rtol: float = 1e-5,
                 atol: float = 1e-6) -> bool:
        return self.shape == other.shape and bool(
            np.allclose(self._data, other._data, rtol=rtol, atol=atol))

    def array_equal(self, other: 'TensorBuffer') -> bool:
        return self.shape == other.shape and bool(
            np.array_equal(self._data, other._data))


# ═════════════════════════════════════════════════════════════════════
#  Factory functions
# ═════════════════════════════════════════════════════════════════════

def tensor(data: Any, dtype: Dtype | np.dtype | None = None) -> TensorBuffer:
    """Copy *data* into a new buffer."""
    return TensorBuffer(data, dtype=dtype)


def zeros(*shape, dtype: Dtype = Dtype.float32) -> TensorBuffer:
    if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
        shape = tuple(shape[0])
    return TensorBuffer._wrap(np.zeros(shape, dtype=dtype.to_numpy()))


def full(shape: Sequence[int], value: float,
         dtype: Dtype = Dtype.float32) -> TensorBuffer:
    return TensorBuffer._wrap(
        np.full(tuple(shape), value, dtype=dtype.to_numpy()))


def cat(buffers: Sequence[TensorBuffer], axis: int = 0) -> TensorBuffer:
    """Concatenate buffers along *axis*; all other dimensions must agree."""
    if not buffers:
        raise InvalidConfiguration("cat() needs at least one buffer")
    ref = buffers[0].shape
    for b in buffers[1:]:
        other = b.shape
        if len(other) != len(ref) or any(
                x != y for i, (x, y) in enumerate(zip(ref, other))
                if i != axis % len(ref)):
            raise InvalidConfiguration(
                f"cannot concatenate {ref} with {other} along axis {axis}")
    return TensorBuffer._wrap(
        np.concatenate([b._data for b in buffers], axis=axis))


__all__ = ['TensorBuffer', 'tensor', 'zeros', 'full', 'cat']
