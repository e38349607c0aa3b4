"""
Shared fixtures: tiny deterministic NumPy networks behind a CallableBackend.

Images are 16x16, latents 4x2x2, token context 8, hidden size 8.
"""
import json

import numpy as np
import pytest

from latentkit.backends import CallableBackend
from latentkit.diffusion import (
    DecoderStage,
    DenoiserStage,
    EncoderStage,
    PipelineConfiguration,
    ResidencyPolicy,
    SafetyCheckerStage,
    SamplingPipeline,
    TextEncoderStage,
)

SIZE = 16
SCALE = 8
LATENT = SIZE // SCALE
TOKENS = 8
HIDDEN = 8


class FakeTokenizer:
    """Whitespace tokenizer: one id per word, wrapped in bos / eos."""

    bos_token_id = 1
    eos_token_id = 2
    pad_token_id = 0

    def encode(self, text):
        words = [3 + sum(map(ord, w)) % 97 for w in text.split()]
        return [self.bos_token_id] + words + [self.eos_token_id]


def text_encoder(input_ids):
    ids = input_ids.astype(np.float32)
    freqs = np.arange(1, HIDDEN + 1, dtype=np.float32)
    return {'last_hidden_state': np.sin(ids[..., None] * freqs * 0.1).astype(np.float32)}


def unet(sample, timestep, encoder_hidden_states):
    cond = encoder_hidden_states.mean(axis=(1, 2)).reshape(-1, 1, 1, 1)
    t = timestep.reshape(-1, 1, 1, 1) / 1000.0
    return {'noise_pred': (0.5 * sample + cond + 0.1 * t).astype(np.float32)}


def vae_decoder(z):
    image = np.tanh(z[:, :3]).repeat(SCALE, axis=2).repeat(SCALE, axis=3)
    return {'image': image.astype(np.float32)}


def vae_encoder(image):
    b, c, h, w = image.shape
    pooled = image.reshape(b, c, h // SCALE, SCALE, w // SCALE, SCALE).mean(axis=(3, 5))
    pooled = np.arctanh(np.clip(pooled, -0.999, 0.999))
    mean = np.concatenate([pooled, pooled.mean(axis=1, keepdims=True)], axis=1)
    return {'mean': mean.astype(np.float32),
            'logvar': np.full(mean.shape, -20.0, dtype=np.float32)}


def register_networks(backend, key=str):
    """Register every fake network on *backend* under ``key(name)``."""

    def recording_unet(sample, timestep, encoder_hidden_states):
        backend.unet_batches.append(sample.shape[0])
        return unet(sample, timestep, encoder_hidden_states)

    def safety_checker(clip_input, images):
        flags = [i in backend.unsafe for i in range(images.shape[0])]
        return {'has_nsfw_concepts': np.array(flags, dtype=bool)}

    backend.register(key('TextEncoder'), text_encoder,
                     inputs={'input_ids': (None, TOKENS)})
    backend.register(key('Unet'), recording_unet, inputs={
        'sample': (None, 4, LATENT, LATENT),
        'timestep': (None,),
        'encoder_hidden_states': (None, TOKENS, HIDDEN),
    })
    backend.register(key('VAEDecoder'), vae_decoder,
                     inputs={'z': (None, 4, LATENT, LATENT)})
    backend.register(key('VAEEncoder'), vae_encoder,
                     inputs={'image': (None, 3, SIZE, SIZE)})
    backend.register(key('SafetyChecker'), safety_checker, inputs={
        'clip_input': (None, 3, 224, 224),
        'images': (None, SIZE, SIZE, 3),
    })
    return backend


def build_backend():
    backend = CallableBackend()
    backend.unsafe = set()
    backend.unet_batches = []
    return register_networks(backend)


@pytest.fixture
def backend():
    return build_backend()


@pytest.fixture
def tokenizer():
    return FakeTokenizer()


@pytest.fixture
def make_pipeline(backend, tokenizer):
    def factory(policy=ResidencyPolicy.ALWAYS_RESIDENT, encoder=True,
                safety=True, **config):
        return SamplingPipeline(
            text_encoder=TextEncoderStage('TextEncoder', backend),
            denoiser=DenoiserStage('Unet', backend),
            decoder=DecoderStage('VAEDecoder', backend),
            tokenizer=tokenizer,
            encoder=EncoderStage('VAEEncoder', backend) if encoder else None,
            safety_checker=(SafetyCheckerStage('SafetyChecker', backend)
                            if safety else None),
            config=PipelineConfiguration(
                policy=policy, height=SIZE, width=SIZE,
                max_token_length=TOKENS, **config),
        )
    return factory


VOCAB = {
    '<|startoftext|>': 0, '<|endoftext|>': 1, 'a</w>': 2, 'r': 3, 'e': 4,
    'd</w>': 5, 're': 6, 'red</w>': 7, 'c': 8, 'u': 9, 'b': 10, 'e</w>': 11,
    'cu': 12, 'cub': 13, 'cube</w>': 14,
}
MERGES = ['r e', 're d</w>', 'c u', 'cu b', 'cub e</w>']


def write_tokenizer_files(path):
    (path / 'vocab.json').write_text(json.dumps(VOCAB))
    (path / 'merges.txt').write_text('#version: 0.2\n' + '\n'.join(MERGES) + '\n')
    return path


@pytest.fixture
def resource_dir(tmp_path, backend):
    """A resource directory whose model assets resolve to the fake networks."""
    for name in ('TextEncoder', 'Unet', 'VAEDecoder', 'VAEEncoder', 'SafetyChecker'):
        (tmp_path / f'{name}.onnx').write_bytes(b'')
    register_networks(backend, key=lambda name: str(tmp_path / f'{name}.onnx'))
    return write_tokenizer_files(tmp_path)


@pytest.fixture
def tokenizer_dir(tmp_path):
    return write_tokenizer_files(tmp_path)
