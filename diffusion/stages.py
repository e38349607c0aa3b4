# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Model stages — the black-box networks the pipeline drives.

A :class:`ModelStage` wraps one compiled network behind a backend and
exposes ``predict(inputs) -> outputs``.  Residency (whether the weights are
loaded) is an owned, queryable field of every stage; only the
:class:`~latentkit.diffusion.resources.ResourceManager` changes it.  Calling
``predict`` on an unloaded stage is a programmer error.

Concrete stages add typed helpers around ``predict``:

- **TextEncoderStage**     — token ids ``(B, L)`` → hidden states ``(B, L, D)``.
- **DenoiserStage**        — ``(sample, timestep, encoder_hidden_states)`` →
  noise prediction.
- **DecoderStage**         — latent ``(B, 4, h, w)`` → image ``(B, 3, H, W)``.
- **EncoderStage**         — image → latent (image-to-image).
- **SafetyCheckerStage**   — image batch → per-image unsafe flags.
"""
from __future__ import annotations

import enum
import numpy as np
from typing import Any, Dict, List, Mapping, Optional

from ..backends.base import Backend
from ..device import device as Device
from ..errors import BackendExecutionError, InvalidState, LatentkitError
from ..tensor import TensorBuffer
from ..utils.image import clip_preprocess
from .rng import RandomSource


class Residency(enum.Enum):
    """Lifecycle of a stage: unloaded → loaded → in use → loaded → unloaded."""
    UNLOADED = 'unloaded'
    LOADED = 'loaded'
    IN_USE = 'in_use'


# ═════════════════════════════════════════════════════════════════════
#  ModelStage — base class
# ═════════════════════════════════════════════════════════════════════

class ModelStage:
    """One black-box network behind a backend.

    Args:
        name:             Role of the stage (``'unet'``, ``'vae_decoder'`` …).
        model_identifier: What the backend loads (a path for ONNX).
        backend:          The :class:`~latentkit.backends.Backend` to use.
        device_hint:      Where the backend should place the network.
    """

    def __init__(self, name: str, model_identifier: str, backend: Backend,
                 device_hint: Optional[Device] = None):
        self.name = name
        self.model_identifier = model_identifier
        self.backend = backend
        self.device_hint = Device(device_hint) if device_hint is not None else None
        self._handle: Any = None
        self._residency = Residency.UNLOADED
        self._step_index: Optional[int] = None

    # ---- residency (mutated by ResourceManager only) ----

    @property
    def residency(self) -> Residency:
        return self._residency

    @property
    def is_loaded(self) -> bool:
        return self._residency is not Residency.UNLOADED

    def _load(self) -> None:
        self._handle = self.backend.load(self.model_identifier, self.device_hint)
        self._residency = Residency.LOADED

    def _unload(self) -> None:
        handle, self._handle = self._handle, None
        self._residency = Residency.UNLOADED
        if handle is not None:
            self.backend.unload(handle)

    def _set_in_use(self, in_use: bool) -> None:
        if self._residency is Residency.UNLOADED:
            raise InvalidState(f"{self.name}: cannot use an unloaded stage")
        self._residency = Residency.IN_USE if in_use else Residency.LOADED

    # ---- inference ----

    def predict(self, inputs: Mapping[str, TensorBuffer],
                step_index: Optional[int] = None) -> Dict[str, TensorBuffer]:
        """Run the network.  Errors carry the stage name and step index."""
        if self._residency is Residency.UNLOADED:
            raise InvalidState(f"{self.name}: predict() on an unloaded stage")
        try:
            return self.backend.predict(self._handle, inputs)
        except BackendExecutionError as exc:
            exc.stage = exc.stage or self.name
            if exc.step_index is None:
                exc.step_index = step_index
            raise
        except LatentkitError:
            raise
        except Exception as exc:
            raise BackendExecutionError(
                f"{type(exc).__name__}: {exc}", stage=self.name,
                step_index=step_index) from exc

    def _output(self, outputs: Mapping[str, TensorBuffer], key: str) -> TensorBuffer:
        if key in outputs:
            return outputs[key]
        if len(outputs) == 1:
            return next(iter(outputs.values()))
        raise BackendExecutionError(
            f"missing output {key!r}; got {sorted(outputs)}", stage=self.name)

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(name={self.name!r}, "
                f"model={self.model_identifier!r}, "
                f"residency={self._residency.value})")


# ═════════════════════════════════════════════════════════════════════
#  Text encoder
# ═════════════════════════════════════════════════════════════════════

class TextEncoderStage(ModelStage):
    """CLIP text encoder: ``input_ids (B, L)`` → ``last_hidden_state (B, L, D)``."""

    def __init__(self, model_identifier: str, backend: Backend,
                 device_hint: Optional[Device] = None,
                 input_name: str = 'input_ids',
                 output_name: str = 'last_hidden_state',
                 name: str = 'text_encoder'):
        super().__init__(name, model_identifier, backend, device_hint)
        self.input_name = input_name
        self.output_name = output_name

    def encode(self, token_ids: TensorBuffer) -> TensorBuffer:
        token_ids.expect_shape((None, None), 'token ids')
        out = self._output(self.predict({self.input_name: token_ids}),
                           self.output_name)
        if out.ndim != 3 or out.shape[:2] != token_ids.shape:
            raise BackendExecutionError(
                f"embedding shape {out.shape} does not match token ids "
                f"{token_ids.shape}", stage=self.name)
        return out


# ═════════════════════════════════════════════════════════════════════
#  Denoiser
# ═════════════════════════════════════════════════════════════════════

class DenoiserStage(ModelStage):
    """UNet noise predictor.

    Inputs ``sample (B, C, h, w)``, ``timestep (B,)`` and
    ``encoder_hidden_states (B, L, D)``; output ``noise_pred (B, C, h, w)``.
    """

    def __init__(self, model_identifier: str, backend: Backend,
                 device_hint: Optional[Device] = None,
                 sample_name: str = 'sample',
                 timestep_name: str = 'timestep',
                 hidden_states_name: str = 'encoder_hidden_states',
                 output_name: str = 'noise_pred',
                 name: str = 'unet'):
        super().__init__(name, model_identifier, backend, device_hint)
        self.sample_name = sample_name
        self.timestep_name = timestep_name
        self.hidden_states_name = hidden_states_name
        self.output_name = output_name

    def predict_noise(self, sample: TensorBuffer, timestep: int,
                      hidden_states: TensorBuffer,
                      step_index: Optional[int] = None) -> TensorBuffer:
        sample.expect_shape((None, None, None, None), 'latent')
        batch = sample.shape[0]
        hidden_states.expect_shape((batch, None, None), 'encoder hidden states')
        t = TensorBuffer._wrap(np.full((batch,), timestep, dtype=np.float32))
        out = self._output(self.predict({
            self.sample_name: sample,
            self.timestep_name: t,
            self.hidden_states_name: hidden_states,
        }, step_index=step_index), self.output_name)
        if out.shape != sample.shape:
            raise BackendExecutionError(
                f"noise prediction shape {out.shape} does not match latent "
                f"{sample.shape}", stage=self.name, step_index=step_index)
        return out


# ═════════════════════════════════════════════════════════════════════
#  VAE decoder / encoder
# ═════════════════════════════════════════════════════════════════════

class DecoderStage(ModelStage):
    """VAE decoder: scaled latent → image in ``[-1, 1]``.

    Args:
        scale_factor: Latent scaling constant; latents are divided by it
                      before decoding.
    """

    def __init__(self, model_identifier: str, backend: Backend,
                 device_hint: Optional[Device] = None,
                 scale_factor: float = 0.18215,
                 input_name: str = 'z', output_name: str = 'image',
                 name: str = 'vae_decoder'):
        super().__init__(name, model_identifier, backend, device_hint)
        self.scale_factor = scale_factor
        self.input_name = input_name
        self.output_name = output_name

    def decode(self, latents: TensorBuffer) -> TensorBuffer:
        latents.expect_shape((None, None, None, None), 'latent')
        z = latents.astype(np.float32) * (1.0 / self.scale_factor)
        image = self._output(self.predict({self.input_name: z}),
                             self.output_name)
        if image.ndim != 4 or image.shape[0] != latents.shape[0]:
            raise BackendExecutionError(
                f"decoded image shape {image.shape} does not match batch "
                f"{latents.shape[0]}", stage=self.name)
        return image.astype(np.float32).clip(-1.0, 1.0)


class EncoderStage(ModelStage):
    """VAE encoder: image in ``[-1, 1]`` → scaled latent.

    The network returns either ``mean`` and ``logvar`` outputs or a single
    ``latent_dist`` output holding both along the channel axis.  A latent is
    sampled as ``mean + exp(logvar / 2) · ε`` and multiplied by
    ``scale_factor``.
    """

    def __init__(self, model_identifier: str, backend: Backend,
                 device_hint: Optional[Device] = None,
                 scale_factor: float = 0.18215,
                 input_name: str = 'image',
                 name: str = 'vae_encoder'):
        super().__init__(name, model_identifier, backend, device_hint)
        self.scale_factor = scale_factor
        self.input_name = input_name

    def _moments(self, image: TensorBuffer):
        outputs = self.predict({self.input_name: image.astype(np.float32)})
        if 'mean' in outputs and 'logvar' in outputs:
            mean = outputs['mean'].numpy()
            logvar = outputs['logvar'].numpy()
        else:
            dist = self._output(outputs, 'latent_dist').numpy()
            if dist.ndim != 4 or dist.shape[1] % 2:
                raise BackendExecutionError(
                    f"latent distribution has shape {dist.shape}",
                    stage=self.name)
            mean, logvar = np.split(dist, 2, axis=1)
        return mean.astype(np.float32), np.clip(
            logvar.astype(np.float32), -30.0, 20.0)

    def encode(self, image: TensorBuffer,
               rng: Optional[RandomSource] = None) -> TensorBuffer:
        """Encode *image*; samples the posterior when *rng* is given, else
        returns the scaled mean."""
        image.expect_shape((None, 3, None, None), 'image')
        mean, logvar = self._moments(image)
        latent = mean
        if rng is not None:
            std = np.exp(np.float32(0.5) * logvar)
            latent = mean + std * rng.normal_array(mean.shape)
        return TensorBuffer._wrap(
            (latent * np.float32(self.scale_factor)).astype(np.float32))


# ═════════════════════════════════════════════════════════════════════
#  Safety checker
# ═════════════════════════════════════════════════════════════════════

class SafetyCheckerStage(ModelStage):
    """Classifies decoded images; returns one ``unsafe`` flag per image.

    Inputs ``clip_input (B, 3, 224, 224)`` (CLIP-normalised) and
    ``images (B, H, W, 3)`` in ``[0, 1]``; output ``has_nsfw_concepts (B,)``.
    """

    def __init__(self, model_identifier: str, backend: Backend,
                 device_hint: Optional[Device] = None,
                 clip_input_name: str = 'clip_input',
                 images_name: str = 'images',
                 output_name: str = 'has_nsfw_concepts',
                 input_size: int = 224,
                 name: str = 'safety_checker'):
        super().__init__(name, model_identifier, backend, device_hint)
        self.clip_input_name = clip_input_name
        self.images_name = images_name
        self.output_name = output_name
        self.input_size = input_size

    def check(self, images: TensorBuffer) -> List[bool]:
        images.expect_shape((None, 3, None, None), 'images')
        clip_input = clip_preprocess(images, self.input_size)
        pixels = TensorBuffer._wrap(
            ((images.numpy().astype(np.float32) + 1.0) / 2.0)
            .transpose(0, 2, 3, 1).copy())
        flags = self._output(self.predict({
            self.clip_input_name: clip_input,
            self.images_name: pixels,
        }), self.output_name).numpy().reshape(-1)
        if flags.shape[0] != images.shape[0]:
            raise BackendExecutionError(
                f"got {flags.shape[0]} safety flags for {images.shape[0]} images",
                stage=self.name)
        return [bool(f) for f in flags]


__all__ = [
    'Residency',
    'ModelStage',
    'TextEncoderStage',
    'DenoiserStage',
    'DecoderStage',
    'EncoderStage',
    'SafetyCheckerStage',
]
