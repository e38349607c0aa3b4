# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Sampling pipeline — prompt in, images out.

Orchestrates the text encoder, denoiser, VAE decoder and optional VAE
encoder / safety checker into the latent-diffusion generation workflow:

1. Encode prompt → text embeddings (``ConditioningBuilder``).
2. Initialise latent noise, or noise a starting image (image-to-image).
3. Iterative denoising with classifier-free guidance (``Scheduler``).
4. Decode latents through the VAE.
5. Optionally screen the images with the safety checker.

Each run moves through :class:`PipelineState`; cancellation is cooperative
and checked at the top of every step and between phases.
"""
from __future__ import annotations

import dataclasses
import enum
import math
import os
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
from tqdm.auto import tqdm

from ..backends.base import Backend
from ..device import device as Device
from ..errors import (
    Cancelled,
    InvalidConfiguration,
    LatentkitError,
    ResourceUnavailable,
    UnsafeContentDetected,
)
from ..tensor import TensorBuffer, cat
from ..utils.image import from_pil_image, to_pil_images
from ..utils.logging import get_logger
from .conditioning import ConditioningBuilder
from .resources import ResidencyPolicy, ResourceManager
from .rng import RANDOM_SOURCES, RandomSource, make_random_source
from .schedulers import SCHEDULERS, Scheduler, make_scheduler
from .stages import (
    DecoderStage,
    DenoiserStage,
    EncoderStage,
    SafetyCheckerStage,
    TextEncoderStage,
)
from .utils import apply_guidance

logger = get_logger(__name__)


# ═════════════════════════════════════════════════════════════════════
#  Request / configuration / result types
# ═════════════════════════════════════════════════════════════════════

class PipelineState(enum.Enum):
    IDLE = 'idle'
    ENCODING = 'encoding'
    DENOISING = 'denoising'
    DECODING = 'decoding'
    SAFETY_CHECK = 'safety_check'
    DONE = 'done'
    CANCELLED = 'cancelled'
    FAILED = 'failed'


class ResultStatus(enum.Enum):
    DONE = 'done'
    FILTERED = 'filtered'


@dataclasses.dataclass(frozen=True)
class GuidanceConfig:
    """Classifier-free guidance weight and DDIM stochasticity.

    ``scale == 0`` runs only the unconditional branch, ``scale == 1`` only
    the conditional branch; any other weight runs both in one batch.
    """

    scale: float = 7.5
    eta: float = 0.0

    def validate(self) -> 'GuidanceConfig':
        if not math.isfinite(self.scale) or self.scale < 0:
            raise InvalidConfiguration(
                f"guidance scale must be a finite non-negative number, "
                f"got {self.scale}")
        if not math.isfinite(self.eta) or self.eta < 0:
            raise InvalidConfiguration(
                f"eta must be a finite non-negative number, got {self.eta}")
        return self

    @property
    def batched(self) -> bool:
        return self.scale not in (0.0, 1.0)

    @property
    def batch_multiplier(self) -> int:
        return 2 if self.batched else 1


@dataclasses.dataclass(frozen=True)
class PipelineRequest:
    """One generation request.

    Attributes:
        prompt / negative_prompt: Text conditioning.
        seed:            Seed for the first image; image ``i`` uses ``seed + i``.
        step_count:      Number of denoising steps (before ``strength``).
        guidance_scale:  Classifier-free guidance weight.
        eta:             DDIM stochasticity (ignored by other schedulers).
        starting_image:  ``(1, 3, H, W)`` buffer in ``[-1, 1]``, a PIL image,
                         or a path; enables image-to-image.
        strength:        Fraction of the schedule to run from the starting
                         image, in ``(0, 1]``.
        image_count:     Number of images to generate.
        scheduler:       ``'pndm'``, ``'ddim'``, ``'euler_ancestral'`` or
                         ``'dpm_solver'``.
        rng:             Random source, ``'numpy'`` or ``'pcg64'``.
        disable_safety:  Skip the safety checker.
        use_denoised_intermediates: Progress previews show the predicted
                         clean image instead of the noisy latent.
    """

    prompt: str
    negative_prompt: str = ''
    seed: int = 0
    step_count: int = 50
    guidance_scale: float = 7.5
    eta: float = 0.0
    starting_image: Any = None
    strength: float = 1.0
    image_count: int = 1
    scheduler: str = 'pndm'
    rng: str = 'numpy'
    disable_safety: bool = False
    use_denoised_intermediates: bool = False

    @property
    def guidance(self) -> GuidanceConfig:
        return GuidanceConfig(self.guidance_scale, self.eta)

    @property
    def is_image_to_image(self) -> bool:
        return self.starting_image is not None

    def validate(self) -> 'PipelineRequest':
        """Raise :class:`InvalidConfiguration` for any out-of-range field."""
        if not isinstance(self.prompt, str):
            raise InvalidConfiguration(f"prompt must be a string, got {self.prompt!r}")
        if not isinstance(self.step_count, int) or isinstance(self.step_count, bool) \
                or self.step_count <= 0:
            raise InvalidConfiguration(
                f"step_count must be a positive integer, got {self.step_count!r}")
        if not isinstance(self.image_count, int) or isinstance(self.image_count, bool) \
                or self.image_count <= 0:
            raise InvalidConfiguration(
                f"image_count must be a positive integer, got {self.image_count!r}")
        if int(self.seed) < 0 or int(self.seed) + self.image_count > 2 ** 32:
            raise InvalidConfiguration(
                f"seed {self.seed} + image_count {self.image_count} must stay "
                f"within [0, 2**32)")
        self.guidance.validate()
        if self.is_image_to_image and not 0.0 < self.strength <= 1.0:
            raise InvalidConfiguration(
                f"strength must be in (0, 1], got {self.strength}")
        if self.scheduler not in SCHEDULERS:
            raise InvalidConfiguration(
                f"Unknown scheduler {self.scheduler!r}; expected one of "
                f"{', '.join(sorted(SCHEDULERS))}")
        if self.rng not in RANDOM_SOURCES:
            raise InvalidConfiguration(
                f"Unknown random source {self.rng!r}; expected one of "
                f"{', '.join(sorted(RANDOM_SOURCES))}")
        return self


@dataclasses.dataclass(frozen=True)
class PipelineConfiguration:
    """Static pipeline configuration.

    Attributes:
        policy:          Stage residency policy.
        height / width:  Output image size in pixels.
        latent_channels: Channels in latent space (4 for SD).
        latent_scale:    Spatial scale factor of the VAE (8 for SD).
        max_token_length: Text-encoder context length.
        scheduler_config: Keyword arguments for every scheduler built
                          (``num_train_timesteps``, ``beta_schedule`` …).
        raise_on_unsafe: Raise :class:`UnsafeContentDetected` instead of
                          returning a filtered result.
        show_progress:   Draw a tqdm bar over the denoising loop.
    """

    policy: ResidencyPolicy = ResidencyPolicy.ALWAYS_RESIDENT
    height: int = 512
    width: int = 512
    latent_channels: int = 4
    latent_scale: int = 8
    max_token_length: int = 77
    scheduler_config: Dict[str, Any] = dataclasses.field(default_factory=dict)
    raise_on_unsafe: bool = False
    show_progress: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'policy', ResidencyPolicy(self.policy))
        for name in ('height', 'width'):
            value = getattr(self, name)
            if value <= 0 or value % self.latent_scale:
                raise InvalidConfiguration(
                    f"{name} must be a positive multiple of {self.latent_scale}, "
                    f"got {value}")

    @property
    def latent_shape(self):
        return (1, self.latent_channels,
                self.height // self.latent_scale,
                self.width // self.latent_scale)


class CancellationToken:
    """Thread-safe flag a caller sets to stop a running generation."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, step_index: Optional[int] = None) -> None:
        if self._event.is_set():
            raise Cancelled(step_index)


@dataclasses.dataclass
class Progress:
    """Snapshot handed to the progress callback after every step.

    ``images()`` decodes a preview on demand: the predicted clean image when
    the request set ``use_denoised_intermediates`` (and the scheduler
    exposes one), otherwise the current noisy latent.
    """

    step: int
    step_count: int
    timestep: int
    latent: TensorBuffer
    denoised: Optional[TensorBuffer]
    elapsed: float
    image_index: int = 0
    _decode: Optional[Callable[[TensorBuffer], TensorBuffer]] = dataclasses.field(
        default=None, repr=False)
    _use_denoised: bool = dataclasses.field(default=False, repr=False)

    def images(self) -> TensorBuffer:
        if self._decode is None:
            raise LatentkitError("no decoder available for previews")
        source = self.denoised if (self._use_denoised and
                                   self.denoised is not None) else self.latent
        return self._decode(source)


@dataclasses.dataclass
class GenerationResult:
    """Outcome of a completed run.

    Attributes:
        images:  One ``(3, H, W)`` buffer in ``[-1, 1]`` per image, or ``None``
                 where the safety checker filtered it.
        unsafe:  Safety flag per image (all ``False`` when unchecked).
        seeds:   Seed used for each image.
        timings: Seconds spent per phase, plus ``'total'``.
        status:  ``DONE`` or ``FILTERED``.
    """

    images: List[Optional[TensorBuffer]]
    unsafe: List[bool]
    seeds: List[int]
    timings: Dict[str, float]
    status: ResultStatus = ResultStatus.DONE

    @property
    def seed(self) -> int:
        return self.seeds[0]

    def pil_images(self) -> list:
        """PIL versions of :attr:`images` (``None`` stays ``None``)."""
        return [None if img is None else to_pil_images(img.reshape(1, *img.shape))[0]
                for img in self.images]


ProgressCallback = Callable[[Progress], Optional[bool]]


# ═════════════════════════════════════════════════════════════════════
#  SamplingPipeline
# ═════════════════════════════════════════════════════════════════════

class SamplingPipeline:
    """Latent-diffusion text-to-image (and image-to-image) pipeline.

    Args:
        text_encoder:   Text encoder stage.
        denoiser:       UNet stage.
        decoder:        VAE decoder stage.
        encoder:        Optional VAE encoder stage, required for
                        image-to-image.
        safety_checker: Optional safety classifier stage.
        tokenizer:      Object with ``encode(text) -> list[int]``.
        config:         :class:`PipelineConfiguration`.
    """

    def __init__(
        self,
        text_encoder: TextEncoderStage,
        denoiser: DenoiserStage,
        decoder: DecoderStage,
        tokenizer,
        encoder: Optional[EncoderStage] = None,
        safety_checker: Optional[SafetyCheckerStage] = None,
        config: Optional[PipelineConfiguration] = None,
    ):
        self.config = config or PipelineConfiguration()
        self.text_encoder = text_encoder
        self.denoiser = denoiser
        self.decoder = decoder
        self.encoder = encoder
        self.safety_checker = safety_checker
        self.tokenizer = tokenizer

        stages = [s for s in (text_encoder, denoiser, decoder, encoder,
                              safety_checker) if s is not None]
        self.resources = ResourceManager(stages, policy=self.config.policy)
        self.conditioning = ConditioningBuilder(
            text_encoder, self.resources, tokenizer=tokenizer,
            max_length=self.config.max_token_length)
        self._state = PipelineState.IDLE

    # ---- construction from a resource directory ----

    @classmethod
    def from_resources(
        cls,
        path: str,
        backend: Optional[Backend] = None,
        policy: ResidencyPolicy | str = ResidencyPolicy.ALWAYS_RESIDENT,
        compute_units: str = 'cpu',
        **config,
    ) -> 'SamplingPipeline':
        """Build a pipeline from a directory of compiled models.

        Expects ``TextEncoder.onnx``, ``Unet.onnx``, ``VAEDecoder.onnx``,
        ``vocab.json`` and ``merges.txt``; ``VAEEncoder.onnx`` and
        ``SafetyChecker.onnx`` are picked up when present.
        """
        from ..backends.onnx import OnnxRuntimeBackend
        from .tokenizer import CLIPTokenizer

        if not os.path.isdir(path):
            raise ResourceUnavailable(f"resource directory {path} does not exist")
        for required in ('TextEncoder.onnx', 'Unet.onnx', 'VAEDecoder.onnx'):
            if not os.path.isfile(os.path.join(path, required)):
                raise ResourceUnavailable(
                    f"{required} not found in {path}", stage=required)

        backend = backend or OnnxRuntimeBackend()
        hint = Device(compute_units)

        def asset(name):
            return os.path.join(path, name)

        encoder = safety = None
        if os.path.isfile(asset('VAEEncoder.onnx')):
            encoder = EncoderStage(asset('VAEEncoder.onnx'), backend, hint)
        if os.path.isfile(asset('SafetyChecker.onnx')):
            safety = SafetyCheckerStage(asset('SafetyChecker.onnx'), backend, hint)

        pipeline = cls(
            text_encoder=TextEncoderStage(asset('TextEncoder.onnx'), backend, hint),
            denoiser=DenoiserStage(asset('Unet.onnx'), backend, hint),
            decoder=DecoderStage(asset('VAEDecoder.onnx'), backend, hint),
            tokenizer=CLIPTokenizer.from_directory(path),
            encoder=encoder,
            safety_checker=safety,
            config=PipelineConfiguration(policy=ResidencyPolicy(policy), **config),
        )
        logger.info("Loaded pipeline resources from %s (encoder=%s, safety=%s)",
                    path, encoder is not None, safety is not None)
        return pipeline

    # ---- lifecycle ----

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def can_safety_check(self) -> bool:
        return self.safety_checker is not None

    def _set_state(self, state: PipelineState) -> None:
        self._state = state
        logger.info("[%s]", state.value)

    def prewarm(self) -> None:
        """Load and unload every stage once to pay first-load costs up front."""
        self.resources.prewarm()
        if self.config.policy is ResidencyPolicy.ALWAYS_RESIDENT:
            self.resources.load_all()

    def unload_resources(self) -> None:
        self.resources.unload_all()

    # ---- building blocks ----

    def make_scheduler(self, request: PipelineRequest) -> Scheduler:
        """Fresh scheduler for one image of *request*."""
        kwargs = dict(self.config.scheduler_config)
        if request.scheduler == 'ddim':
            kwargs['eta'] = request.eta
        elif request.eta:
            logger.debug("eta=%s ignored by the %s scheduler",
                         request.eta, request.scheduler)
        return make_scheduler(request.scheduler, **kwargs)

    def _strength(self, request: PipelineRequest) -> Optional[float]:
        if request.is_image_to_image and request.strength < 1.0:
            return request.strength
        return None

    def _starting_image(self, request: PipelineRequest) -> Optional[TensorBuffer]:
        if not request.is_image_to_image:
            return None
        if self.encoder is None:
            raise InvalidConfiguration(
                "image-to-image needs a VAE encoder stage")
        if self._strength(request) is None:
            # Full strength starts from pure noise, like text-to-image
            return None
        image = request.starting_image
        if not isinstance(image, TensorBuffer):
            try:
                image = from_pil_image(image, self.config.width,
                                       self.config.height)
            except OSError as exc:
                raise InvalidConfiguration(
                    f"cannot read starting image {image!r}: {exc}") from exc
        image.expect_shape((1, 3, self.config.height, self.config.width),
                           'starting image')
        return image

    def prepare_latents(self, scheduler: Scheduler, rng: RandomSource,
                        image: Optional[TensorBuffer] = None,
                        encoder: Optional[EncoderStage] = None) -> TensorBuffer:
        """Initial latent: scaled noise, or a noised encoding of *image*.

        Pass an already acquired *encoder* to encode several images under a
        single residency hold.
        """
        shape = self.config.latent_shape
        if image is None:
            noise = rng.normal_array(shape)
            return TensorBuffer._wrap(
                noise * np.float32(scheduler.init_noise_sigma))

        if encoder is None:
            with self.resources.acquire(self.encoder) as held:
                init = held.encode(image, rng=rng)
        else:
            init = encoder.encode(image, rng=rng)
        init.expect_shape(shape, 'encoded starting image')
        noise = rng.normal(shape)
        return scheduler.add_noise(init, noise, int(scheduler.timesteps[0]))

    def decode_latents(self, latents: TensorBuffer) -> TensorBuffer:
        """Decode latents through the VAE; images are clamped to [-1, 1]."""
        with self.resources.acquire(self.decoder) as decoder:
            return decoder.decode(latents)

    def progress_bar(self, iterable, desc: str = ''):
        """Wrap an iterable with an optional progress bar."""
        return tqdm(iterable, desc=desc, disable=not self.config.show_progress)

    def _check(self, cancel: Optional[CancellationToken],
               step_index: Optional[int] = None) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled(step_index)

    # ---- denoising ----

    def _start_run(self, request: PipelineRequest,
                   image_index: int) -> Tuple[Scheduler, RandomSource]:
        """Fresh scheduler and random source for one image of *request*."""
        rng = make_random_source(request.rng, request.seed + image_index)
        scheduler = self.make_scheduler(request)
        scheduler.set_timesteps(request.step_count, self._strength(request))
        return scheduler, rng

    def _initial_latents(self, runs, image: Optional[TensorBuffer]):
        if image is None:
            return [self.prepare_latents(s, rng) for s, rng in runs]
        with self.resources.acquire(self.encoder) as encoder:
            return [self.prepare_latents(s, rng, image, encoder)
                    for s, rng in runs]

    def _denoise(self, request: PipelineRequest, embeddings: TensorBuffer,
                 denoiser: DenoiserStage, scheduler: Scheduler,
                 rng: RandomSource, latents: TensorBuffer, image_index: int,
                 progress: Optional[ProgressCallback],
                 cancel: Optional[CancellationToken],
                 started: float) -> TensorBuffer:
        guidance = request.guidance
        timesteps = scheduler.timesteps
        steps = len(timesteps)
        for i, t in enumerate(self.progress_bar(
                timesteps, desc=f"image {image_index + 1}")):
            self._check(cancel, i)
            t = int(t)

            model_input = latents
            if guidance.batched:
                model_input = cat([latents, latents], axis=0)
            model_input = scheduler.scale_model_input(model_input, t)

            noise_pred = denoiser.predict_noise(
                model_input, t, embeddings, step_index=i)
            if guidance.batched:
                noise_pred = apply_guidance(noise_pred, guidance.scale)

            latents = scheduler.step(noise_pred, t, latents,
                                     step_index=i, rng=rng)

            if progress is not None:
                keep_going = progress(Progress(
                    step=i,
                    step_count=steps,
                    timestep=t,
                    latent=latents,
                    denoised=getattr(scheduler, 'pred_original_sample', None),
                    elapsed=time.perf_counter() - started,
                    image_index=image_index,
                    _decode=self.decode_latents,
                    _use_denoised=request.use_denoised_intermediates,
                ))
                if keep_going is False:
                    raise Cancelled(i)
        return latents

    # ---- entry point ----

    def generate(self, request: PipelineRequest,
                 progress: Optional[ProgressCallback] = None,
                 cancel: Optional[CancellationToken] = None) -> GenerationResult:
        """Run one request to completion.

        Raises:
            InvalidConfiguration: before any stage is loaded.
            ResourceUnavailable / BackendExecutionError: stage failures.
            Cancelled: the token was set or the callback returned ``False``.
            UnsafeContentDetected: only with ``raise_on_unsafe``.
        """
        request.validate()
        # Validate the schedule and starting image before anything loads
        self.make_scheduler(request).set_timesteps(
            request.step_count, self._strength(request))
        image = self._starting_image(request)

        timings: Dict[str, float] = {}
        started = time.perf_counter()
        seeds = [request.seed + k for k in range(request.image_count)]

        try:
            if self.config.policy is ResidencyPolicy.ALWAYS_RESIDENT:
                self.resources.load_all()

            self._set_state(PipelineState.ENCODING)
            self._check(cancel)
            t0 = time.perf_counter()
            embeddings = self.conditioning.encode_text(
                request.prompt, request.negative_prompt,
                guidance_scale=request.guidance_scale,
                check_cancelled=lambda: self._check(cancel))
            timings['encoding'] = time.perf_counter() - t0

            self._check(cancel)
            self._set_state(PipelineState.DENOISING)
            t0 = time.perf_counter()
            runs = [self._start_run(request, k)
                    for k in range(request.image_count)]
            initial = self._initial_latents(runs, image)
            with self.resources.acquire(self.denoiser) as denoiser:
                latents = [self._denoise(request, embeddings, denoiser,
                                         scheduler, rng, x, k,
                                         progress, cancel, started)
                           for k, ((scheduler, rng), x)
                           in enumerate(zip(runs, initial))]
            timings['denoising'] = time.perf_counter() - t0

            self._check(cancel)
            self._set_state(PipelineState.DECODING)
            t0 = time.perf_counter()
            decoded = self.decode_latents(cat(latents, axis=0))
            timings['decoding'] = time.perf_counter() - t0

            unsafe = [False] * len(seeds)
            if self.can_safety_check and not request.disable_safety:
                self._set_state(PipelineState.SAFETY_CHECK)
                t0 = time.perf_counter()
                with self.resources.acquire(self.safety_checker) as checker:
                    unsafe = checker.check(decoded)
                timings['safety_check'] = time.perf_counter() - t0
        except Cancelled as exc:
            self._set_state(PipelineState.CANCELLED)
            logger.info("Generation cancelled at step %s", exc.step_index)
            raise
        except BaseException:
            self._set_state(PipelineState.FAILED)
            raise

        images: List[Optional[TensorBuffer]] = []
        for k, flagged in enumerate(unsafe):
            if flagged:
                logger.warning("Image %d (seed %d) was filtered by the safety "
                               "checker", k, seeds[k])
                images.append(None)
            else:
                images.append(decoded[k])
        timings['total'] = time.perf_counter() - started

        result = GenerationResult(
            images=images,
            unsafe=unsafe,
            seeds=seeds,
            timings=timings,
            status=ResultStatus.FILTERED if any(unsafe) else ResultStatus.DONE,
        )
        self._set_state(PipelineState.DONE)
        logger.info("Generated %d image(s) in %.2fs (%s)", len(images),
                    timings['total'],
                    ', '.join(f"{k}={v:.2f}s" for k, v in timings.items()
                              if k != 'total'))
        if any(unsafe) and self.config.raise_on_unsafe:
            raise UnsafeContentDetected(result)
        return result

    def __call__(self, prompt: str, **kwargs) -> GenerationResult:
        progress = kwargs.pop('progress', None)
        cancel = kwargs.pop('cancel', None)
        return self.generate(PipelineRequest(prompt, **kwargs),
                             progress=progress, cancel=cancel)

    def __repr__(self) -> str:
        return (f"SamplingPipeline(state={self._state.value}, "
                f"resources={self.resources!r})")


__all__ = [
    'PipelineState',
    'ResultStatus',
    'GuidanceConfig',
    'PipelineRequest',
    'PipelineConfiguration',
    'CancellationToken',
    'Progress',
    'GenerationResult',
    'ProgressCallback',
    'SamplingPipeline',
]
