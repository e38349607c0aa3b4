"""
Tests for latentkit.tensor, dtype and device.
"""
import numpy as np
import pytest

import latentkit as lk
from latentkit import TensorBuffer, InvalidConfiguration


def test_buffer_is_read_only_copy():
    src = np.arange(6, dtype=np.float32).reshape(2, 3)
    t = TensorBuffer(src)
    src[0, 0] = 100.0
    assert t.numpy()[0, 0] == 0.0
    with pytest.raises(ValueError):
        t.numpy()[0, 0] = 1.0


def test_shape_dtype_strides():
    t = lk.zeros(2, 3, 4)
    assert t.shape == (2, 3, 4)
    assert t.ndim == 3
    assert t.dtype is lk.float32
    assert t.strides == (12, 4, 1)
    assert t.size == 24
    assert t.nbytes == 96
    assert len(t) == 2


def test_unsupported_dtype_rejected():
    with pytest.raises(InvalidConfiguration):
        TensorBuffer(np.array(['a', 'b']))


def test_expect_shape_wildcards():
    t = lk.zeros(1, 4, 8, 8)
    assert t.expect_shape((None, 4, None, None)) is t
    with pytest.raises(InvalidConfiguration, match='latent'):
        t.expect_shape((1, 3, 8, 8), 'latent')
    with pytest.raises(InvalidConfiguration):
        t.expect_shape((1, 4, 8))


def test_arithmetic_returns_new_buffers():
    a = lk.tensor([1.0, 2.0, 3.0], dtype=lk.float32)
    b = lk.tensor([1.0, 1.0, 1.0], dtype=lk.float32)
    c = a + b
    assert c is not a
    np.testing.assert_allclose(c.numpy(), [2.0, 3.0, 4.0])
    np.testing.assert_allclose((a * 2).numpy(), [2.0, 4.0, 6.0])
    np.testing.assert_allclose((1.0 - a).numpy(), [0.0, -1.0, -2.0])
    np.testing.assert_allclose((-a / 2).numpy(), [-0.5, -1.0, -1.5])
    assert (a * 2.0).dtype is lk.float32
    with pytest.raises(InvalidConfiguration):
        a + lk.zeros(2)


def test_split_cat_repeat():
    t = TensorBuffer(np.arange(8, dtype=np.float32).reshape(4, 2))
    top, bottom = t.split(2, axis=0)
    assert top.shape == (2, 2)
    assert lk.cat([top, bottom]).array_equal(t)
    assert t.repeat(2, axis=0).shape == (8, 2)
    with pytest.raises(InvalidConfiguration):
        t.split(3, axis=0)
    with pytest.raises(InvalidConfiguration):
        lk.cat([t, lk.zeros(4, 3)], axis=0)
    assert lk.cat([t, lk.zeros(4, 3)], axis=1).shape == (4, 5)


def test_astype_and_reshape():
    t = lk.full((2, 2), 1.5)
    h = t.astype(lk.float16)
    assert h.dtype is lk.float16
    assert t.astype(np.float32) is t
    assert t.reshape(4).shape == (4,)
    with pytest.raises(InvalidConfiguration):
        t.reshape(3)


def test_dtype_conversions():
    assert lk.dtype.from_numpy(np.int64) is lk.int64
    assert lk.dtype.from_onnx('tensor(float16)') is lk.float16
    assert lk.float32.is_floating_point
    assert not lk.int32.is_floating_point
    assert lk.float16.itemsize == 2
    with pytest.raises(InvalidConfiguration):
        lk.dtype.from_onnx('tensor(string)')


def test_device_providers():
    assert lk.device('cpu').providers() == ['CPUExecutionProvider']
    assert lk.device('cuda:1').providers() == [
        ('CUDAExecutionProvider', {'device_id': 1}), 'CPUExecutionProvider']
    assert lk.device('coreml') == 'coreml'
    assert str(lk.device('cuda:0')) == 'cuda:0'
    with pytest.raises(InvalidConfiguration):
        lk.device('tpu')
