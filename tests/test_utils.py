"""
Tests for guidance, beta schedules, the ring buffer, random sources and logging.
"""
import logging as std_logging

import numpy as np
import pytest

from latentkit import TensorBuffer, InvalidConfiguration
from latentkit.diffusion import RingBuffer, apply_guidance, get_beta_schedule
from latentkit.diffusion.rng import (
    GeneratorRandomSource,
    NumpyRandomSource,
    make_random_source,
)
from latentkit.utils import logging


def test_ring_buffer_overwrites_oldest():
    rb = RingBuffer(3)
    for i in range(5):
        rb.append(i)
    assert len(rb) == 3
    assert list(rb) == [2, 3, 4]
    assert rb[-1] == 4 and rb[-3] == 2
    with pytest.raises(IndexError):
        rb[-4]
    rb.clear()
    assert len(rb) == 0 and rb.capacity == 3
    with pytest.raises(InvalidConfiguration):
        RingBuffer(0)


def test_apply_guidance_formula():
    uncond = np.full((1, 2), 1.0, dtype=np.float32)
    cond = np.full((1, 2), 3.0, dtype=np.float32)
    pred = TensorBuffer(np.concatenate([uncond, cond]))
    np.testing.assert_allclose(apply_guidance(pred, 7.5).numpy(), [[16.0, 16.0]])
    np.testing.assert_allclose(apply_guidance(pred, 0.0).numpy(), uncond)
    np.testing.assert_allclose(apply_guidance(pred, 1.0).numpy(), cond)
    with pytest.raises(InvalidConfiguration):
        apply_guidance(TensorBuffer(np.zeros((3, 2), dtype=np.float32)), 2.0)


@pytest.mark.parametrize('name', ['linear', 'scaled_linear', 'squaredcos_cap_v2'])
def test_beta_schedules(name):
    betas = get_beta_schedule(name, 1000)
    assert betas.shape == (1000,)
    assert betas.dtype == np.float32
    assert 0 < betas.min() and betas.max() < 1
    assert np.all(np.diff(betas) >= 0)


def test_scaled_linear_endpoints():
    betas = get_beta_schedule('scaled_linear', 1000)
    np.testing.assert_allclose([betas[0], betas[-1]], [0.00085, 0.012], rtol=1e-5)
    with pytest.raises(InvalidConfiguration):
        get_beta_schedule('cosine', 1000)


def test_numpy_source_matches_random_state():
    expected = np.random.RandomState(42).standard_normal((2, 3)).astype(np.float32)
    np.testing.assert_array_equal(NumpyRandomSource(42).normal_array((2, 3)), expected)


def test_sources_are_seeded_and_distinct():
    for kind in ('numpy', 'pcg64'):
        a = make_random_source(kind, 7).normal((4,))
        b = make_random_source(kind, 7).normal((4,))
        assert a.array_equal(b)
        assert a.dtype.name == 'float32'
    assert not make_random_source('numpy', 7).normal((4,)).array_equal(
        GeneratorRandomSource(7).normal((4,)))


@pytest.mark.parametrize('seed', [-1, 2 ** 32])
def test_seed_range(seed):
    with pytest.raises(InvalidConfiguration):
        make_random_source('numpy', seed)


def test_unknown_source():
    with pytest.raises(InvalidConfiguration):
        make_random_source('torch', 0)


def test_logging_verbosity():
    before = logging.get_verbosity()
    try:
        logging.set_verbosity('debug')
        assert logging.get_verbosity() == std_logging.DEBUG
        logging.set_verbosity_error()
        assert logging.get_verbosity() == std_logging.ERROR
        assert logging.get_logger('latentkit.diffusion').getEffectiveLevel() == std_logging.ERROR
        with pytest.raises(ValueError):
            logging.set_verbosity('loud')
    finally:
        logging.set_verbosity(before)
