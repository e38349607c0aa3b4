# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Prompt conditioning — token ids to text-encoder embeddings.

:class:`ConditioningBuilder` pads or truncates token sequences to the text
encoder's context length and runs the encoder once per prompt branch.  With
classifier-free guidance the result is ``[uncond; cond]`` along the batch
axis; otherwise only the branch the denoiser will see is encoded.
"""
from __future__ import annotations

import numpy as np
from typing import Callable, List, Optional, Sequence

from ..errors import InvalidConfiguration
from ..tensor import TensorBuffer, cat
from ..utils.logging import get_logger
from .resources import ResourceManager
from .stages import TextEncoderStage

logger = get_logger(__name__)


def pad_tokens(token_ids: Sequence[int], max_length: int, pad_token_id: int,
               eos_token_id: Optional[int] = None) -> List[int]:
    """Fit *token_ids* to exactly *max_length* entries.

    Short sequences are right-padded with *pad_token_id*.  Long sequences are
    cut, and when *eos_token_id* is given the last kept position is replaced
    by it so the encoder still sees an end-of-text marker.
    """
    if max_length <= 0:
        raise InvalidConfiguration(f"max_length must be positive, got {max_length}")
    ids = [int(t) for t in token_ids]
    if len(ids) > max_length:
        ids = ids[:max_length]
        if eos_token_id is not None:
            ids[-1] = int(eos_token_id)
    return ids + [int(pad_token_id)] * (max_length - len(ids))


class ConditioningBuilder:
    """Builds the encoder hidden states fed to the denoiser.

    Args:
        text_encoder:  The text-encoder stage.
        resources:     Manager that owns the stage's residency.
        tokenizer:     Object with ``encode(text) -> list[int]`` (and
                       ideally ``pad_token_id`` / ``eos_token_id``); needed
                       only for :meth:`encode_text`.
        max_length:    Encoder context length.
        pad_token_id / eos_token_id: Override the tokenizer's ids.
    """

    def __init__(self, text_encoder: TextEncoderStage,
                 resources: ResourceManager,
                 tokenizer=None,
                 max_length: int = 77,
                 pad_token_id: Optional[int] = None,
                 eos_token_id: Optional[int] = None):
        self.text_encoder = text_encoder
        self.resources = resources
        self.tokenizer = tokenizer
        self.max_length = max_length
        if pad_token_id is None:
            pad_token_id = getattr(tokenizer, 'pad_token_id', None)
        if eos_token_id is None:
            eos_token_id = getattr(tokenizer, 'eos_token_id', None)
        if pad_token_id is None:
            pad_token_id = eos_token_id if eos_token_id is not None else 0
        self.pad_token_id = pad_token_id
        self.eos_token_id = eos_token_id

    def _ids(self, token_ids: Sequence[int], max_length: int) -> TensorBuffer:
        ids = pad_tokens(token_ids, max_length, self.pad_token_id,
                         self.eos_token_id)
        return TensorBuffer._wrap(np.asarray([ids], dtype=np.int32))

    def encode(self, token_ids: Sequence[int],
               max_length: Optional[int] = None,
               negative_ids: Optional[Sequence[int]] = None,
               guidance_scale: float = 1.0,
               check_cancelled: Optional[Callable[[], None]] = None) -> TensorBuffer:
        """Encode a prompt (and its negative) into an embedding.

        Returns ``(2, L, D)`` — unconditional first — when guidance needs both
        branches, otherwise ``(1, L, D)``: the unconditional branch at weight
        0 and the conditional branch at weight 1.  *negative_ids* defaults to
        the empty prompt.  *check_cancelled* is called between the branches.
        """
        if guidance_scale < 0:
            raise InvalidConfiguration(
                f"guidance scale must be non-negative, got {guidance_scale}")
        max_length = max_length or self.max_length
        if negative_ids is None:
            negative_ids = self._empty_prompt_ids()

        want_uncond = guidance_scale != 1.0
        want_cond = guidance_scale != 0.0

        branches = []
        with self.resources.acquire(self.text_encoder) as encoder:
            if want_uncond:
                branches.append(encoder.encode(self._ids(negative_ids, max_length)))
                if want_cond and check_cancelled is not None:
                    check_cancelled()
            if want_cond:
                branches.append(encoder.encode(self._ids(token_ids, max_length)))

        logger.debug("Encoded %d prompt branch(es), context length %d",
                     len(branches), max_length)
        return branches[0] if len(branches) == 1 else cat(branches, axis=0)

    def _empty_prompt_ids(self) -> List[int]:
        if self.tokenizer is not None:
            return list(self.tokenizer.encode(''))
        return [] if self.eos_token_id is None else [self.eos_token_id]

    def encode_text(self, prompt: str, negative_prompt: str = '',
                    guidance_scale: float = 1.0,
                    check_cancelled: Optional[Callable[[], None]] = None) -> TensorBuffer:
        """Tokenize then :meth:`encode`."""
        if self.tokenizer is None:
            raise InvalidConfiguration("encode_text() needs a tokenizer")
        return self.encode(
            self.tokenizer.encode(prompt),
            negative_ids=self.tokenizer.encode(negative_prompt or ''),
            guidance_scale=guidance_scale,
            check_cancelled=check_cancelled,
        )


__all__ = ['ConditioningBuilder', 'pad_tokens']
