"""
Tests for model stages, the callable backend and the ResourceManager.
"""
import threading

import numpy as np
import pytest

from latentkit import TensorBuffer, BackendExecutionError, InvalidState, ResourceUnavailable
from latentkit.backends import CallableBackend
from latentkit.diffusion import (
    DecoderStage,
    DenoiserStage,
    Residency,
    ResidencyPolicy,
    ResourceManager,
    TextEncoderStage,
)


def _ids(*ids):
    return TensorBuffer(np.array([ids + (0,) * (8 - len(ids))], dtype=np.int32))


def test_predict_requires_loaded_stage(backend):
    stage = TextEncoderStage('TextEncoder', backend)
    assert stage.residency is Residency.UNLOADED
    with pytest.raises(InvalidState):
        stage.encode(_ids(1, 2))


def test_acquire_transitions(backend):
    stage = TextEncoderStage('TextEncoder', backend)
    rm = ResourceManager([stage], policy=ResidencyPolicy.LOAD_ON_DEMAND)
    with rm.acquire(stage) as s:
        assert s.residency is Residency.IN_USE
        assert rm.users(stage) == 1
        emb = s.encode(_ids(1, 5, 2))
        assert emb.shape == (1, 8, 8)
    assert stage.residency is Residency.UNLOADED
    assert backend.load_counts['TextEncoder'] == 1
    assert backend.unload_counts['TextEncoder'] == 1
    assert rm.resident_stages() == []


def test_always_resident_keeps_stages_loaded(backend):
    enc = TextEncoderStage('TextEncoder', backend)
    dec = DecoderStage('VAEDecoder', backend)
    rm = ResourceManager([enc, dec])
    rm.load_all()
    assert sorted(rm.resident_stages()) == ['text_encoder', 'vae_decoder']
    with rm.acquire(enc):
        pass
    rm.release(enc)
    assert enc.residency is Residency.LOADED
    assert backend.load_counts['TextEncoder'] == 1
    rm.unload_all()
    assert rm.resident_stages() == []


def test_load_failure_is_isolated(backend):
    good = TextEncoderStage('TextEncoder', backend)
    bad = DenoiserStage('MissingUnet', backend)
    rm = ResourceManager([good, bad])
    rm.ensure_loaded(good)
    with pytest.raises(ResourceUnavailable) as info:
        rm.ensure_loaded(bad)
    assert info.value.stage == 'unet'
    assert bad.residency is Residency.UNLOADED
    assert good.residency is Residency.LOADED
    assert rm.resident_stages() == ['text_encoder']


def test_loader_exception_becomes_resource_unavailable():
    class Broken(CallableBackend):
        def load(self, model_identifier, device_hint=None):
            raise OSError('disk on fire')

    stage = DecoderStage('VAEDecoder', Broken())
    rm = ResourceManager([stage])
    with pytest.raises(ResourceUnavailable, match='disk on fire'):
        rm.ensure_loaded(stage)
    assert not stage.is_loaded


def test_backend_errors_carry_stage_and_step():
    backend = CallableBackend().register(
        'Unet', lambda sample, timestep, encoder_hidden_states: 1 / 0)
    stage = DenoiserStage('Unet', backend)
    rm = ResourceManager([stage])
    with rm.acquire(stage):
        with pytest.raises(BackendExecutionError) as info:
            stage.predict_noise(TensorBuffer(np.zeros((1, 4, 2, 2), np.float32)), 1,
                                TensorBuffer(np.zeros((1, 8, 8), np.float32)),
                                step_index=3)
    assert info.value.stage == 'unet'
    assert info.value.step_index == 3
    assert 'stage=unet' in str(info.value)


def test_input_shape_mismatch(backend):
    stage = TextEncoderStage('TextEncoder', backend)
    rm = ResourceManager([stage])
    with rm.acquire(stage):
        with pytest.raises(BackendExecutionError):
            stage.encode(TensorBuffer(np.zeros((1, 5), dtype=np.int32)))


def test_stage_not_unloaded_while_in_use(backend):
    stage = TextEncoderStage('TextEncoder', backend)
    rm = ResourceManager([stage], policy='load_on_demand')
    entered, proceed = threading.Event(), threading.Event()
    seen = []

    def first():
        with rm.acquire(stage):
            entered.set()
            proceed.wait(5)
            seen.append(stage.residency)

    def second():
        with rm.acquire(stage):
            seen.append(stage.residency)

    t1 = threading.Thread(target=first)
    t1.start()
    entered.wait(5)
    t2 = threading.Thread(target=second)
    t2.start()
    rm.release(stage)
    assert stage.is_loaded
    proceed.set()
    t1.join(5)
    t2.join(5)
    assert seen == [Residency.IN_USE, Residency.IN_USE]
    assert not stage.is_loaded


def test_prewarm_leaves_on_demand_stages_unloaded(backend):
    stages = [TextEncoderStage('TextEncoder', backend),
              DecoderStage('VAEDecoder', backend)]
    rm = ResourceManager(stages, policy=ResidencyPolicy.LOAD_ON_DEMAND)
    rm.prewarm()
    assert backend.load_counts['TextEncoder'] == 1
    assert backend.load_counts['VAEDecoder'] == 1
    assert rm.resident_stages() == []


def test_decoder_scales_and_clamps(backend):
    stage = DecoderStage('VAEDecoder', backend)
    rm = ResourceManager([stage])
    z = TensorBuffer(np.full((1, 4, 2, 2), 0.18215 * 0.5, dtype=np.float32))
    with rm.acquire(stage):
        image = stage.decode(z)
    assert image.shape == (1, 3, 16, 16)
    np.testing.assert_allclose(image.numpy(), np.tanh(0.5), rtol=1e-5)
