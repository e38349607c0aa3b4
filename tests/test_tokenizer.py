import pytest

from latentkit import ResourceUnavailable
from latentkit.diffusion import (
    CLIPTokenizer,
    PipelineRequest,
    ResidencyPolicy,
    ResultStatus,
    SamplingPipeline,
)

SIZE = 16
TOKENS = 8


@pytest.fixture
def clip(tokenizer_dir):
    return CLIPTokenizer.from_directory(str(tokenizer_dir))


def test_encode_wraps_in_start_and_end(clip):
    assert clip.encode('a red cube') == [0, 2, 7, 14, 1]
    assert clip('a red cube') == clip.encode('a red cube')


def test_encode_normalizes_case_and_whitespace(clip):
    assert clip.encode('A   Red') == [0, 2, 7, 1]


def test_empty_text_is_start_and_end_only(clip):
    assert clip.encode('') == [0, 1]


def test_pad_defaults_to_end_token(clip):
    assert clip.bos_token_id == 0
    assert clip.eos_token_id == 1
    assert clip.pad_token_id == 1


def test_decode_drops_markers(clip):
    assert clip.decode([0, 2, 7, 14, 1]) == 'a red cube'


def test_missing_files_raise(tmp_path):
    with pytest.raises(ResourceUnavailable):
        CLIPTokenizer.from_directory(str(tmp_path))


def test_unknown_pad_token_raises(tokenizer_dir):
    with pytest.raises(ResourceUnavailable):
        CLIPTokenizer.from_directory(str(tokenizer_dir), pad_token='!')


def test_from_resources_missing_directory(tmp_path):
    with pytest.raises(ResourceUnavailable):
        SamplingPipeline.from_resources(str(tmp_path / 'nope'))


def test_from_resources_missing_denoiser(resource_dir, backend):
    (resource_dir / 'Unet.onnx').unlink()
    with pytest.raises(ResourceUnavailable):
        SamplingPipeline.from_resources(str(resource_dir), backend=backend)


def test_from_resources_optional_stages(resource_dir, backend):
    (resource_dir / 'SafetyChecker.onnx').unlink()
    pipeline = SamplingPipeline.from_resources(
        str(resource_dir), backend=backend, height=SIZE, width=SIZE,
        max_token_length=TOKENS)
    assert pipeline.encoder is not None
    assert not pipeline.can_safety_check


def test_from_resources_generates(resource_dir, backend):
    pipeline = SamplingPipeline.from_resources(
        str(resource_dir), backend=backend, policy='load_on_demand',
        height=SIZE, width=SIZE, max_token_length=TOKENS)
    assert pipeline.config.policy is ResidencyPolicy.LOAD_ON_DEMAND
    result = pipeline.generate(PipelineRequest('a red cube', step_count=3, seed=7))
    assert result.status is ResultStatus.DONE
    assert result.seeds == [7]
    assert result.images[0].shape == (3, SIZE, SIZE)
