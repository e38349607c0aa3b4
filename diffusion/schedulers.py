# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Noise schedulers for latent diffusion sampling.

Every scheduler precomputes the cumulative products of ``(1 - β)`` over the
training horizon, subsamples a strided, descending set of inference
timesteps, and implements ``step`` — the update from one latent to the next
given the denoiser's prediction:

- **DDIMScheduler**                 — deterministic at ``eta = 0``, stochastic
  noise term for ``eta > 0`` (Song et al. 2020).
- **PNDMScheduler**                 — pseudo linear multistep (PLMS) over the
  last four model outputs (Liu et al. 2022).
- **EulerAncestralDiscreteScheduler** — Euler step in sigma space plus fresh
  ancestral noise every step (Karras et al. 2022).
- **DPMSolverMultistepScheduler**   — second-order DPM-Solver++
  (Lu et al. 2022).

All arithmetic is float32 with a fixed evaluation order.  A scheduler
instance holds the history of one run; build one per generation with
:func:`make_scheduler`.
"""
from __future__ import annotations

import dataclasses
import math
import numpy as np
from typing import Optional

from ..errors import InvalidConfiguration, InvalidState
from ..tensor import TensorBuffer
from .rng import RandomSource
from .utils import RingBuffer, alphas_cumprod_from_betas, get_beta_schedule

_F32 = np.float32


# ═════════════════════════════════════════════════════════════════════
#  Schedule state
# ═════════════════════════════════════════════════════════════════════

@dataclasses.dataclass(frozen=True, eq=False)
class ScheduleState:
    """Precomputed, read-only schedule for one run.

    Attributes:
        num_train_timesteps: Length of the training horizon T.
        num_inference_steps: Requested step count N (before ``strength``).
        timesteps:           Descending timesteps actually run.
        alphas_cumprod:      ᾱ for every training timestep, shape ``(T,)``.
        final_alpha_cumprod: ᾱ used after the last timestep.
        sigmas:              Per-step sigmas plus a trailing 0, for
                             sigma-space schedulers; otherwise ``None``.
        init_noise_sigma:    Std-dev of the initial noise latent.
        start_index:         Index into the full N-step schedule where the
                             run begins (non-zero for image-to-image).
    """

    num_train_timesteps: int
    num_inference_steps: int
    timesteps: np.ndarray
    alphas_cumprod: np.ndarray
    final_alpha_cumprod: float
    sigmas: Optional[np.ndarray] = None
    init_noise_sigma: float = 1.0
    start_index: int = 0

    def __len__(self) -> int:
        return len(self.timesteps)


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


# ═════════════════════════════════════════════════════════════════════
#  Shared base
# ═════════════════════════════════════════════════════════════════════

class _SchedulerBase:
    """Schedule construction, timestep lookup and forward noising.

    Args:
        num_train_timesteps: Training diffusion steps T.
        beta_start / beta_end: β range.
        beta_schedule:       ``'scaled_linear'`` (Stable Diffusion),
                             ``'linear'`` or ``'squaredcos_cap_v2'``.
        prediction_type:     ``'epsilon'`` or ``'v_prediction'``.
        set_alpha_to_one:    Use ᾱ = 1 after the last step (zero noise);
                             otherwise reuse ᾱ₀.
        steps_offset:        Added to every inference timestep.
    """

    name = 'base'

    def __init__(
        self,
        num_train_timesteps: int = 1000,
        beta_start: float = 0.00085,
        beta_end: float = 0.012,
        beta_schedule: str = 'scaled_linear',
        prediction_type: str = 'epsilon',
        set_alpha_to_one: bool = True,
        steps_offset: int = 1,
    ):
        if num_train_timesteps <= 0:
            raise InvalidConfiguration(
                f"num_train_timesteps must be positive, got {num_train_timesteps}")
        if prediction_type not in ('epsilon', 'v_prediction'):
            raise InvalidConfiguration(
                f"Unknown prediction type: {prediction_type!r}")
        if steps_offset < 0:
            raise InvalidConfiguration(
                f"steps_offset must be non-negative, got {steps_offset}")
        self.num_train_timesteps = num_train_timesteps
        self.prediction_type = prediction_type
        self.steps_offset = steps_offset

        self.betas = get_beta_schedule(beta_schedule, num_train_timesteps,
                                       beta_start, beta_end)
        self.alphas_cumprod = alphas_cumprod_from_betas(self.betas)
        self.final_alpha_cumprod = _F32(1.0 if set_alpha_to_one
                                        else self.alphas_cumprod[0])

        self._state: Optional[ScheduleState] = None

    # ---- schedule ----

    def _inference_timesteps(self, num_inference_steps: int) -> np.ndarray:
        T = self.num_train_timesteps
        if not isinstance(num_inference_steps, (int, np.integer)) or \
                isinstance(num_inference_steps, bool):
            raise InvalidConfiguration(
                f"num_inference_steps must be an int, got {num_inference_steps!r}")
        if num_inference_steps <= 0:
            raise InvalidConfiguration(
                f"num_inference_steps must be positive, got {num_inference_steps}")
        if num_inference_steps > T:
            raise InvalidConfiguration(
                f"num_inference_steps ({num_inference_steps}) exceeds "
                f"num_train_timesteps ({T})")
        step_ratio = T // num_inference_steps
        # The offset never pushes the last timestep past T - 1
        offset = min(self.steps_offset,
                     T - 1 - (num_inference_steps - 1) * step_ratio)
        return (np.arange(0, num_inference_steps)[::-1] * step_ratio
                + offset).astype(np.int64)

    @staticmethod
    def start_index_for_strength(num_inference_steps: int,
                                 strength: Optional[float]) -> int:
        """First step to run when starting from a partially-noised image."""
        if strength is None:
            return 0
        if not 0.0 < strength <= 1.0:
            raise InvalidConfiguration(
                f"strength must be in (0, 1], got {strength}")
        init_timestep = min(int(num_inference_steps * strength),
                            num_inference_steps)
        if init_timestep == 0:
            raise InvalidConfiguration(
                f"strength {strength} leaves no denoising steps out of "
                f"{num_inference_steps}")
        return num_inference_steps - init_timestep

    def _make_state(self, timesteps: np.ndarray, num_inference_steps: int,
                    start_index: int) -> ScheduleState:
        return ScheduleState(
            num_train_timesteps=self.num_train_timesteps,
            num_inference_steps=num_inference_steps,
            timesteps=_frozen(timesteps[start_index:]),
            alphas_cumprod=_frozen(self.alphas_cumprod),
            final_alpha_cumprod=float(self.final_alpha_cumprod),
            start_index=start_index,
        )

    def set_timesteps(self, num_inference_steps: int,
                      strength: Optional[float] = None) -> ScheduleState:
        """Precompute the schedule for a run and reset step history."""
        timesteps = self._inference_timesteps(num_inference_steps)
        start = self.start_index_for_strength(num_inference_steps, strength)
        self._state = self._make_state(timesteps, num_inference_steps, start)
        self.reset()
        return self._state

    def reset(self) -> None:
        """Forget per-run history."""

    @property
    def state(self) -> ScheduleState:
        if self._state is None:
            raise InvalidState("set_timesteps() has not been called")
        return self._state

    @property
    def timesteps(self) -> np.ndarray:
        return self.state.timesteps

    @property
    def init_noise_sigma(self) -> float:
        return 1.0

    def _index_of(self, timestep: int, step_index: Optional[int]) -> int:
        timesteps = self.state.timesteps
        if step_index is not None:
            if not 0 <= step_index < len(timesteps) or \
                    int(timesteps[step_index]) != int(timestep):
                raise InvalidState(
                    f"timestep {timestep} is not step {step_index} of the "
                    f"schedule")
            return step_index
        hits = np.nonzero(timesteps == int(timestep))[0]
        if len(hits) == 0:
            raise InvalidState(f"timestep {timestep} is not in the schedule")
        return int(hits[0])

    def _alpha_prev(self, index: int) -> np.float32:
        timesteps = self.state.timesteps
        if index + 1 < len(timesteps):
            return self.alphas_cumprod[int(timesteps[index + 1])]
        return self.final_alpha_cumprod

    # ---- model-output conversions ----

    def _predict_x0(self, model_output: np.ndarray, sample: np.ndarray,
                    alpha_bar_t: np.float32) -> np.ndarray:
        if self.prediction_type == 'epsilon':
            return (sample - np.sqrt(_F32(1) - alpha_bar_t) * model_output) \
                / np.sqrt(alpha_bar_t)
        return np.sqrt(alpha_bar_t) * sample \
            - np.sqrt(_F32(1) - alpha_bar_t) * model_output

    def _predict_epsilon(self, model_output: np.ndarray, sample: np.ndarray,
                         alpha_bar_t: np.float32) -> np.ndarray:
        if self.prediction_type == 'epsilon':
            return model_output
        return np.sqrt(alpha_bar_t) * model_output \
            + np.sqrt(_F32(1) - alpha_bar_t) * sample

    @staticmethod
    def _operands(model_output: TensorBuffer, sample: TensorBuffer):
        if model_output.shape != sample.shape:
            raise InvalidConfiguration(
                f"model output shape {model_output.shape} does not match "
                f"sample shape {sample.shape}")
        return (model_output.numpy().astype(_F32, copy=False),
                sample.numpy().astype(_F32, copy=False))

    @staticmethod
    def _result(prev: np.ndarray, like: TensorBuffer) -> TensorBuffer:
        return TensorBuffer._wrap(
            np.asarray(prev, dtype=_F32).astype(like.numpy().dtype, copy=False))

    # ---- public API ----

    def scale_model_input(self, sample: TensorBuffer, timestep: int) -> TensorBuffer:
        """Scale the denoiser input for *timestep* (identity by default)."""
        return sample

    def add_noise(self, original: TensorBuffer, noise: TensorBuffer,
                  timestep: int) -> TensorBuffer:
        """Forward diffusion q(x_t | x_0) at a single timestep."""
        if original.shape != noise.shape:
            raise InvalidConfiguration(
                f"noise shape {noise.shape} does not match {original.shape}")
        if not 0 <= int(timestep) < self.num_train_timesteps:
            raise InvalidState(f"timestep {timestep} outside training horizon")
        a = self.alphas_cumprod[int(timestep)]
        x0 = original.numpy().astype(_F32, copy=False)
        eps = noise.numpy().astype(_F32, copy=False)
        noisy = np.sqrt(a) * x0 + np.sqrt(_F32(1) - a) * eps
        return self._result(noisy, original)

    def step(self, model_output: TensorBuffer, timestep: int,
             sample: TensorBuffer, step_index: Optional[int] = None,
             rng: Optional[RandomSource] = None) -> TensorBuffer:
        raise NotImplementedError

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(num_train_timesteps="
                f"{self.num_train_timesteps}, prediction_type="
                f"{self.prediction_type!r})")


# ═════════════════════════════════════════════════════════════════════
#  DDIMScheduler
# ═════════════════════════════════════════════════════════════════════

class DDIMScheduler(_SchedulerBase):
    """Denoising Diffusion Implicit Models (Song et al. 2020).

    Deterministic when ``eta = 0``.  With ``eta > 0`` fresh noise scaled by
    the η-derived variance is mixed in, drawn from the run's random source.

    Args:
        eta:          Default stochasticity; ``step`` accepts an override.
        clip_sample:  Clip predicted x₀ to [-1, 1].
        (remaining arguments as in the base schedule.)
    """

    name = 'ddim'

    def __init__(self, *args, eta: float = 0.0, clip_sample: bool = False,
                 **kwargs):
        super().__init__(*args, **kwargs)
        if eta < 0:
            raise InvalidConfiguration(f"eta must be non-negative, got {eta}")
        self.eta = eta
        self.clip_sample = clip_sample
        self.pred_original_sample: Optional[TensorBuffer] = None

    def reset(self) -> None:
        self.pred_original_sample = None

    def step(self, model_output: TensorBuffer, timestep: int,
             sample: TensorBuffer, step_index: Optional[int] = None,
             rng: Optional[RandomSource] = None,
             eta: Optional[float] = None) -> TensorBuffer:
        """DDIM reverse step (deterministic when eta=0)."""
        i = self._index_of(timestep, step_index)
        eps_in, x_t = self._operands(model_output, sample)
        eta = self.eta if eta is None else eta

        alpha_bar_t = self.alphas_cumprod[int(timestep)]
        alpha_bar_prev = self._alpha_prev(i)

        pred_x0 = self._predict_x0(eps_in, x_t, alpha_bar_t)
        eps = self._predict_epsilon(eps_in, x_t, alpha_bar_t)
        if self.clip_sample:
            pred_x0 = np.clip(pred_x0, -1.0, 1.0)

        sigma = _F32(eta) * np.sqrt(
            (_F32(1) - alpha_bar_prev) / (_F32(1) - alpha_bar_t)
            * (_F32(1) - alpha_bar_t / alpha_bar_prev)
        )
        pred_dir = np.sqrt(np.maximum(_F32(1) - alpha_bar_prev - sigma ** 2,
                                      _F32(0))) * eps
        prev = np.sqrt(alpha_bar_prev) * pred_x0 + pred_dir

        if eta > 0 and sigma > 0:
            if rng is None:
                raise InvalidState("stochastic DDIM step needs a random source")
            prev = prev + sigma * rng.normal_array(x_t.shape)

        self.pred_original_sample = self._result(pred_x0, sample)
        return self._result(prev, sample)


# ═════════════════════════════════════════════════════════════════════
#  PNDMScheduler
# ═════════════════════════════════════════════════════════════════════

class PNDMScheduler(_SchedulerBase):
    """Pseudo Numerical Diffusion Model scheduler (Liu et al. 2022).

    Pseudo linear multistep (PLMS): the noise estimate used at each step is
    an Adams–Bashforth combination of up to the last four model outputs,
    kept in a fixed-capacity ring buffer.  The first steps use lower orders
    while the history fills, so the run makes exactly one model call per
    timestep.
    """

    name = 'pndm'

    #: Adams–Bashforth coefficients (newest first) and denominators per order.
    _COEFFS = {
        1: ((1,), 1),
        2: ((3, -1), 2),
        3: ((23, -16, 5), 12),
        4: ((55, -59, 37, -9), 24),
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._ets: RingBuffer[np.ndarray] = RingBuffer(4)
        self.pred_original_sample: Optional[TensorBuffer] = None

    def reset(self) -> None:
        self._ets.clear()
        self.pred_original_sample = None

    @property
    def history_size(self) -> int:
        return len(self._ets)

    def _combined_eps(self) -> np.ndarray:
        n = len(self._ets)
        coeffs, denom = self._COEFFS[n]
        acc = _F32(coeffs[0]) * self._ets[-1]
        for k in range(1, n):
            acc = acc + _F32(coeffs[k]) * self._ets[-1 - k]
        return acc / _F32(denom)

    def _get_prev_sample(self, sample: np.ndarray, alpha_bar_t: np.float32,
                         alpha_bar_prev: np.float32,
                         eps: np.ndarray) -> np.ndarray:
        beta_bar_t = _F32(1) - alpha_bar_t
        beta_bar_prev = _F32(1) - alpha_bar_prev
        sample_coeff = np.sqrt(alpha_bar_prev / alpha_bar_t)
        denom = alpha_bar_t * np.sqrt(beta_bar_prev) + np.sqrt(
            alpha_bar_t * beta_bar_t * alpha_bar_prev)
        return sample_coeff * sample - (alpha_bar_prev - alpha_bar_t) * eps / denom

    def step(self, model_output: TensorBuffer, timestep: int,
             sample: TensorBuffer, step_index: Optional[int] = None,
             rng: Optional[RandomSource] = None) -> TensorBuffer:
        """PLMS (linear multi-step) step."""
        i = self._index_of(timestep, step_index)
        out, x_t = self._operands(model_output, sample)
        alpha_bar_t = self.alphas_cumprod[int(timestep)]
        alpha_bar_prev = self._alpha_prev(i)

        self._ets.append(self._predict_epsilon(out, x_t, alpha_bar_t).copy())
        eps = self._combined_eps()

        prev = self._get_prev_sample(x_t, alpha_bar_t, alpha_bar_prev, eps)
        self.pred_original_sample = self._result(
            (x_t - np.sqrt(_F32(1) - alpha_bar_t) * eps) / np.sqrt(alpha_bar_t),
            sample)
        return self._result(prev, sample)


# ═════════════════════════════════════════════════════════════════════
#  EulerAncestralDiscreteScheduler
# ═════════════════════════════════════════════════════════════════════

class EulerAncestralDiscreteScheduler(_SchedulerBase):
    """Ancestral Euler sampler in sigma space (Karras et al. 2022).

    ``σ_t = sqrt((1 − ᾱ_t) / ᾱ_t)``.  Each step takes an Euler step down to
    ``σ_down`` and adds fresh noise with std ``σ_up`` so the marginal noise
    level lands on the next sigma.  Requires ``scale_model_input``.
    """

    name = 'euler_ancestral'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sigmas_full = np.sqrt(
            (_F32(1) - self.alphas_cumprod) / self.alphas_cumprod
        ).astype(_F32)
        self.pred_original_sample: Optional[TensorBuffer] = None

    def reset(self) -> None:
        self.pred_original_sample = None

    def _make_state(self, timesteps, num_inference_steps, start_index):
        sigmas = np.append(self.sigmas_full[timesteps], _F32(0)).astype(_F32)
        sigmas = sigmas[start_index:]
        max_sigma = float(sigmas.max())
        return ScheduleState(
            num_train_timesteps=self.num_train_timesteps,
            num_inference_steps=num_inference_steps,
            timesteps=_frozen(timesteps[start_index:]),
            alphas_cumprod=_frozen(self.alphas_cumprod),
            final_alpha_cumprod=float(self.final_alpha_cumprod),
            sigmas=_frozen(sigmas),
            init_noise_sigma=math.sqrt(max_sigma ** 2 + 1.0),
            start_index=start_index,
        )

    @property
    def init_noise_sigma(self) -> float:
        return self.state.init_noise_sigma

    def scale_model_input(self, sample: TensorBuffer, timestep: int) -> TensorBuffer:
        """Pre-scale the model input: ``x / sqrt(σ² + 1)``."""
        i = self._index_of(timestep, None)
        sigma = self.state.sigmas[i]
        x = sample.numpy().astype(_F32, copy=False)
        return self._result(x / np.sqrt(sigma * sigma + _F32(1)), sample)

    def add_noise(self, original: TensorBuffer, noise: TensorBuffer,
                  timestep: int) -> TensorBuffer:
        """Sigma-space noising: ``x₀ + σ_t · ε``."""
        if original.shape != noise.shape:
            raise InvalidConfiguration(
                f"noise shape {noise.shape} does not match {original.shape}")
        if not 0 <= int(timestep) < self.num_train_timesteps:
            raise InvalidState(f"timestep {timestep} outside training horizon")
        sigma = self.sigmas_full[int(timestep)]
        x0 = original.numpy().astype(_F32, copy=False)
        return self._result(
            x0 + sigma * noise.numpy().astype(_F32, copy=False), original)

    def step(self, model_output: TensorBuffer, timestep: int,
             sample: TensorBuffer, step_index: Optional[int] = None,
             rng: Optional[RandomSource] = None) -> TensorBuffer:
        """Euler ancestral step."""
        i = self._index_of(timestep, step_index)
        out, x_t = self._operands(model_output, sample)
        sigmas = self.state.sigmas
        sigma = sigmas[i]
        sigma_next = sigmas[i + 1]

        if self.prediction_type == 'epsilon':
            pred_x0 = x_t - sigma * out
        else:
            pred_x0 = out * (-sigma / np.sqrt(sigma * sigma + _F32(1))) \
                + x_t / (sigma * sigma + _F32(1))

        sigma_up = np.sqrt(sigma_next ** 2 * (sigma ** 2 - sigma_next ** 2)
                           / sigma ** 2)
        sigma_down = np.sqrt(sigma_next ** 2 - sigma_up ** 2)

        derivative = (x_t - pred_x0) / sigma
        prev = x_t + derivative * (sigma_down - sigma)
        if sigma_up > 0:
            if rng is None:
                raise InvalidState("ancestral step needs a random source")
            prev = prev + rng.normal_array(x_t.shape) * sigma_up

        self.pred_original_sample = self._result(pred_x0, sample)
        return self._result(prev, sample)


# ═════════════════════════════════════════════════════════════════════
#  DPMSolverMultistepScheduler (DPM-Solver++)
# ═════════════════════════════════════════════════════════════════════

class DPMSolverMultistepScheduler(_SchedulerBase):
    """DPM-Solver++ multistep scheduler (Lu et al. 2022).

    Second-order (midpoint) multistep solver over data predictions,
    achieving good samples in 15–25 steps.  The last step falls back to
    first order, and the first step is first order while the history fills.

    Args:
        solver_order:      1 or 2.
        lower_order_final: Use a first-order update on the final step.
    """

    name = 'dpm_solver'

    def __init__(self, *args, solver_order: int = 2,
                 lower_order_final: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        if solver_order not in (1, 2):
            raise InvalidConfiguration(
                f"solver_order must be 1 or 2, got {solver_order}")
        self.solver_order = solver_order
        self.lower_order_final = lower_order_final
        self.alpha_t = np.sqrt(self.alphas_cumprod).astype(_F32)
        self.sigma_t = np.sqrt(_F32(1) - self.alphas_cumprod).astype(_F32)
        self.lambda_t = (np.log(self.alpha_t) - np.log(self.sigma_t)).astype(_F32)
        self._model_outputs: RingBuffer[np.ndarray] = RingBuffer(solver_order)
        self._timestep_history: RingBuffer[int] = RingBuffer(solver_order)
        self.pred_original_sample: Optional[TensorBuffer] = None

    def reset(self) -> None:
        self._model_outputs.clear()
        self._timestep_history.clear()
        self.pred_original_sample = None

    def _terminal(self):
        a = self.final_alpha_cumprod
        alpha = np.sqrt(a)
        sigma = np.sqrt(_F32(1) - a)
        return alpha, sigma

    def step(self, model_output: TensorBuffer, timestep: int,
             sample: TensorBuffer, step_index: Optional[int] = None,
             rng: Optional[RandomSource] = None) -> TensorBuffer:
        """One multistep DPM-Solver++ update."""
        i = self._index_of(timestep, step_index)
        out, x_t = self._operands(model_output, sample)
        t = int(timestep)
        timesteps = self.state.timesteps
        is_last = i + 1 >= len(timesteps)

        x0 = self._predict_x0(out, x_t, self.alphas_cumprod[t])
        self._model_outputs.append(x0)
        self._timestep_history.append(t)
        self.pred_original_sample = self._result(x0, sample)

        if is_last:
            alpha_s, sigma_s = self._terminal()
        else:
            s = int(timesteps[i + 1])
            alpha_s, sigma_s = self.alpha_t[s], self.sigma_t[s]

        if sigma_s == 0:
            # Zero-noise terminal: the update collapses to the data prediction
            return self._result(x0, sample)

        lambda_s = np.log(alpha_s) - np.log(sigma_s)
        lambda_cur = self.lambda_t[t]
        h = lambda_s - lambda_cur
        phi = np.expm1(-h)

        order = min(self.solver_order, len(self._model_outputs))
        if is_last and self.lower_order_final:
            order = 1

        prev = (sigma_s / self.sigma_t[t]) * x_t - alpha_s * phi * x0
        if order == 2:
            t_prev = self._timestep_history[-2]
            h_0 = lambda_cur - self.lambda_t[t_prev]
            r0 = h_0 / h
            d1 = (x0 - self._model_outputs[-2]) / r0
            prev = prev - _F32(0.5) * alpha_s * phi * d1
        return self._result(prev, sample)


# ═════════════════════════════════════════════════════════════════════
#  Factory
# ═════════════════════════════════════════════════════════════════════

SCHEDULERS = {
    DDIMScheduler.name: DDIMScheduler,
    PNDMScheduler.name: PNDMScheduler,
    EulerAncestralDiscreteScheduler.name: EulerAncestralDiscreteScheduler,
    DPMSolverMultistepScheduler.name: DPMSolverMultistepScheduler,
}


def make_scheduler(kind: str, **config) -> _SchedulerBase:
    """Build a fresh scheduler (``'ddim'``, ``'pndm'``, ``'euler_ancestral'``,
    ``'dpm_solver'``) with the given schedule configuration."""
    if kind not in SCHEDULERS:
        raise InvalidConfiguration(
            f"Unknown scheduler {kind!r}; expected one of "
            f"{', '.join(sorted(SCHEDULERS))}")
    return SCHEDULERS[kind](**config)


Scheduler = _SchedulerBase


# ═════════════════════════════════════════════════════════════════════
#  Exports
# ═════════════════════════════════════════════════════════════════════

__all__ = [
    'ScheduleState',
    'Scheduler',
    'DDIMScheduler',
    'PNDMScheduler',
    'EulerAncestralDiscreteScheduler',
    'DPMSolverMultistepScheduler',
    'SCHEDULERS',
    'make_scheduler',
]
