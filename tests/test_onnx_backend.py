"""
Tests for the ONNX Runtime backend against a stubbed InferenceSession.
"""
import numpy as np
import onnxruntime as ort
import pytest

from latentkit import TensorBuffer, device, BackendExecutionError, ResourceUnavailable
from latentkit.backends import OnnxRuntimeBackend


class _Node:
    def __init__(self, name, shape, type):
        self.name = name
        self.shape = shape
        self.type = type


class FakeSession:
    instances = []

    def __init__(self, path, sess_options=None, providers=None):
        self.path = path
        self.providers = providers
        self.feeds = []
        FakeSession.instances.append(self)

    def get_inputs(self):
        return [_Node('sample', ['batch', 4, 2, 2], 'tensor(float16)'),
                _Node('timestep', ['batch'], 'tensor(int64)')]

    def get_outputs(self):
        return [_Node('out_sample', ['batch', 4, 2, 2], 'tensor(float16)')]

    def run(self, names, feed):
        self.feeds.append(feed)
        if np.any(feed['timestep'] < 0):
            raise RuntimeError('bad timestep')
        return [feed['sample'] * 2]


@pytest.fixture
def model(tmp_path, monkeypatch):
    FakeSession.instances = []
    monkeypatch.setattr(ort, 'InferenceSession', FakeSession)
    monkeypatch.setattr(ort, 'get_available_providers',
                        lambda: ['CPUExecutionProvider'])
    path = tmp_path / 'Unet.onnx'
    path.write_bytes(b'onnx')
    return str(path)


def _inputs(batch=1, t=10.0):
    return {
        'sample': TensorBuffer(np.ones((batch, 4, 2, 2), dtype=np.float32)),
        'timestep': TensorBuffer(np.full((batch,), t, dtype=np.float32)),
    }


def test_missing_asset(tmp_path):
    with pytest.raises(ResourceUnavailable):
        OnnxRuntimeBackend().load(str(tmp_path / 'nope.onnx'))


def test_unavailable_providers_fall_back_to_cpu(model):
    OnnxRuntimeBackend().load(model, device('cuda:0'))
    assert FakeSession.instances[-1].providers == ['CPUExecutionProvider']


def test_session_failure_is_resource_unavailable(model, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError('invalid protobuf')

    monkeypatch.setattr(ort, 'InferenceSession', broken)
    with pytest.raises(ResourceUnavailable, match='invalid protobuf'):
        OnnxRuntimeBackend().load(model)


def test_predict_casts_to_declared_types(model):
    backend = OnnxRuntimeBackend()
    handle = backend.load(model)
    out = backend.predict(handle, _inputs(batch=2))
    feed = FakeSession.instances[-1].feeds[-1]
    assert feed['sample'].dtype == np.float16
    assert feed['timestep'].dtype == np.int64
    assert out['out_sample'].shape == (2, 4, 2, 2)
    np.testing.assert_allclose(out['out_sample'].numpy(), 2.0)


def test_shape_and_name_mismatches(model):
    backend = OnnxRuntimeBackend()
    handle = backend.load(model)
    bad = _inputs()
    bad['sample'] = TensorBuffer(np.ones((1, 3, 2, 2), dtype=np.float32))
    with pytest.raises(BackendExecutionError):
        backend.predict(handle, bad)
    with pytest.raises(BackendExecutionError):
        backend.predict(handle, {'sample': _inputs()['sample']})
    with pytest.raises(BackendExecutionError):
        backend.predict(handle, _inputs(t=10.5))


def test_run_failure_and_unload(model):
    backend = OnnxRuntimeBackend()
    handle = backend.load(model)
    with pytest.raises(BackendExecutionError, match='bad timestep'):
        backend.predict(handle, _inputs(t=-1.0))
    backend.unload(handle)
    with pytest.raises(BackendExecutionError):
        backend.predict(handle, _inputs())
