# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Element types for :class:`~latentkit.tensor.TensorBuffer`."""
from __future__ import annotations

import enum
import numpy as np


class dtype(enum.Enum):
    """Element types understood by the stages and backends."""
    float16 = "float16"
    float32 = "float32"
    float64 = "float64"
    int32 = "int32"
    int64 = "int64"
    uint8 = "uint8"
    bool = "bool"

    def to_numpy(self) -> np.dtype:
        """Convert to numpy dtype."""
        return np.dtype(_TO_NUMPY[self])

    @staticmethod
    def from_numpy(np_dtype) -> 'dtype':
        """Convert numpy dtype to a latentkit dtype."""
        key = np.dtype(np_dtype)
        if key not in _FROM_NUMPY:
            from .errors import InvalidConfiguration
            raise InvalidConfiguration(f"Unsupported element type: {key}")
        return _FROM_NUMPY[key]

    @staticmethod
    def from_onnx(type_str: str) -> 'dtype':
        """Convert an ONNX Runtime type string (``'tensor(float)'``)."""
        if type_str not in _FROM_ONNX:
            from .errors import InvalidConfiguration
            raise InvalidConfiguration(f"Unsupported ONNX element type: {type_str!r}")
        return _FROM_ONNX[type_str]

    @property
    def is_floating_point(self) -> bool:
        return self in (dtype.float16, dtype.float32, dtype.float64)

    @property
    def itemsize(self) -> int:
        return self.to_numpy().itemsize

    def __repr__(self) -> str:
        return f"latentkit.{self.name}"


_TO_NUMPY = {
    dtype.float16: np.float16,
    dtype.float32: np.float32,
    dtype.float64: np.float64,
    dtype.int32: np.int32,
    dtype.int64: np.int64,
    dtype.uint8: np.uint8,
    dtype.bool: np.bool_,
}

_FROM_NUMPY = {np.dtype(v): k for k, v in _TO_NUMPY.items()}

_FROM_ONNX = {
    'tensor(float16)': dtype.float16,
    'tensor(float)': dtype.float32,
    'tensor(double)': dtype.float64,
    'tensor(int32)': dtype.int32,
    'tensor(int64)': dtype.int64,
    'tensor(uint8)': dtype.uint8,
    'tensor(bool)': dtype.bool,
}


# Convenience aliases
float16 = dtype.float16
float32 = dtype.float32
float64 = dtype.float64
half = dtype.float16
int32 = dtype.int32
int64 = dtype.int64
long = dtype.int64
uint8 = dtype.uint8
bool = dtype.bool
