"""
Tests for prompt conditioning.
"""
import numpy as np
import pytest

from latentkit import InvalidConfiguration
from latentkit.diffusion import (
    ConditioningBuilder,
    ResidencyPolicy,
    ResourceManager,
    TextEncoderStage,
    pad_tokens,
)


def test_pad_tokens_pads_short_sequences():
    assert pad_tokens([1, 5, 2], 6, pad_token_id=0) == [1, 5, 2, 0, 0, 0]


def test_pad_tokens_truncates_keeping_end_marker():
    ids = [1] + list(range(10, 20)) + [2]
    out = pad_tokens(ids, 5, pad_token_id=0, eos_token_id=2)
    assert out == [1, 10, 11, 12, 2]
    assert pad_tokens(ids, 5, pad_token_id=0) == [1, 10, 11, 12, 13]


def _builder(backend, tokenizer, policy=ResidencyPolicy.ALWAYS_RESIDENT):
    stage = TextEncoderStage('TextEncoder', backend)
    rm = ResourceManager([stage], policy=policy)
    return ConditioningBuilder(stage, rm, tokenizer=tokenizer, max_length=8), stage


def test_guided_embedding_is_uncond_then_cond(backend, tokenizer):
    builder, _ = _builder(backend, tokenizer)
    both = builder.encode_text('a red cube', guidance_scale=7.5)
    assert both.shape == (2, 8, 8)
    uncond = builder.encode_text('a red cube', guidance_scale=0.0)
    cond = builder.encode_text('a red cube', guidance_scale=1.0)
    assert uncond.shape == cond.shape == (1, 8, 8)
    np.testing.assert_array_equal(both.numpy()[0], uncond.numpy()[0])
    np.testing.assert_array_equal(both.numpy()[1], cond.numpy()[0])
    assert not uncond.array_equal(cond)


def test_encoder_runs_once_per_needed_branch(backend, tokenizer):
    builder, _ = _builder(backend, tokenizer)
    builder.encode_text('a red cube', guidance_scale=7.5)
    assert backend.predict_counts['TextEncoder'] == 2
    builder.encode_text('a red cube', guidance_scale=0.0)
    assert backend.predict_counts['TextEncoder'] == 3


def test_negative_prompt_changes_uncond_branch(backend, tokenizer):
    builder, _ = _builder(backend, tokenizer)
    plain = builder.encode_text('a cube', '', guidance_scale=0.0)
    negative = builder.encode_text('a cube', 'blurry', guidance_scale=0.0)
    assert not plain.array_equal(negative)


def test_text_encoder_released_on_demand(backend, tokenizer):
    builder, stage = _builder(backend, tokenizer, ResidencyPolicy.LOAD_ON_DEMAND)
    builder.encode_text('a red cube', guidance_scale=7.5)
    assert not stage.is_loaded
    assert backend.load_counts['TextEncoder'] == 1
    assert backend.unload_counts['TextEncoder'] == 1


def test_long_prompt_is_truncated(backend, tokenizer):
    builder, _ = _builder(backend, tokenizer)
    emb = builder.encode(list(range(3, 40)), guidance_scale=1.0)
    assert emb.shape == (1, 8, 8)


def test_negative_guidance_rejected(backend, tokenizer):
    builder, _ = _builder(backend, tokenizer)
    with pytest.raises(InvalidConfiguration):
        builder.encode_text('a red cube', guidance_scale=-1.0)
    assert backend.load_counts['TextEncoder'] == 0
