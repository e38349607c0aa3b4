# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""latentkit.diffusion — Schedulers, model stages, and the sampling pipeline.

Noise schedulers (DDIM, PNDM, Euler ancestral, DPM-Solver++), the model
stages that wrap compiled networks, stage residency management, prompt
conditioning, and the text-to-image / image-to-image pipeline.

Usage::

    from latentkit.diffusion import SamplingPipeline, PipelineRequest

    pipe = SamplingPipeline.from_resources('models/sd-1.5')
    result = pipe.generate(PipelineRequest('a red cube', seed=42,
                                           step_count=25))
"""
from __future__ import annotations

# ── Schedulers ──
from .schedulers import (
    ScheduleState,
    Scheduler,
    DDIMScheduler,
    PNDMScheduler,
    EulerAncestralDiscreteScheduler,
    DPMSolverMultistepScheduler,
    SCHEDULERS,
    make_scheduler,
)

# ── Stages & residency ──
from .stages import (
    Residency,
    ModelStage,
    TextEncoderStage,
    DenoiserStage,
    DecoderStage,
    EncoderStage,
    SafetyCheckerStage,
)
from .resources import ResidencyPolicy, ResourceManager

# ── Conditioning ──
from .conditioning import ConditioningBuilder, pad_tokens
from .tokenizer import CLIPTokenizer

# ── Pipelines ──
from .pipelines import (
    PipelineState,
    ResultStatus,
    GuidanceConfig,
    PipelineRequest,
    PipelineConfiguration,
    CancellationToken,
    Progress,
    GenerationResult,
    SamplingPipeline,
)
from .worker import GenerationQueue, Job

# ── Utilities ──
from .rng import RandomSource, make_random_source
from .utils import apply_guidance, get_beta_schedule, RingBuffer

__all__ = [
    # Schedulers
    'ScheduleState',
    'Scheduler',
    'DDIMScheduler',
    'PNDMScheduler',
    'EulerAncestralDiscreteScheduler',
    'DPMSolverMultistepScheduler',
    'SCHEDULERS',
    'make_scheduler',
    # Stages
    'Residency',
    'ModelStage',
    'TextEncoderStage',
    'DenoiserStage',
    'DecoderStage',
    'EncoderStage',
    'SafetyCheckerStage',
    'ResidencyPolicy',
    'ResourceManager',
    # Conditioning
    'ConditioningBuilder',
    'pad_tokens',
    'CLIPTokenizer',
    # Pipelines
    'PipelineState',
    'ResultStatus',
    'GuidanceConfig',
    'PipelineRequest',
    'PipelineConfiguration',
    'CancellationToken',
    'Progress',
    'GenerationResult',
    'SamplingPipeline',
    'GenerationQueue',
    'Job',
    # Utilities
    'RandomSource',
    'make_random_source',
    'apply_guidance',
    'get_beta_schedule',
    'RingBuffer',
]
