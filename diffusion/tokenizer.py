# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""CLIP byte-pair-encoding tokenizer.

Built with the Hugging Face ``tokenizers`` library from the ``vocab.json``
and ``merges.txt`` that ship next to the compiled text encoder.  ``encode``
returns ``[bos] + tokens + [eos]`` without padding; padding and truncation
to the encoder's context length are done by the conditioning builder.
"""
from __future__ import annotations

import os
from typing import List, Optional

from tokenizers import Regex, Tokenizer
from tokenizers import normalizers, pre_tokenizers
from tokenizers.decoders import ByteLevel as ByteLevelDecoder
from tokenizers.models import BPE
from tokenizers.processors import TemplateProcessing

from ..errors import ResourceUnavailable

# Word splitting used by CLIP before byte-level BPE.
_CLIP_PATTERN = (r"""<\|startoftext\|>|<\|endoftext\|>|'s|'t|'re|'ve|'m|'ll|'d"""
                 r"""|[\p{L}]+|[\p{N}]|[^\s\p{L}\p{N}]+""")


class CLIPTokenizer:
    """Text → token ids for CLIP text encoders.

    Args:
        vocab_path:  Path to ``vocab.json``.
        merges_path: Path to ``merges.txt``.
        bos_token / eos_token: Start and end markers.
        pad_token:   Token used by the conditioning builder for padding
                     (``<|endoftext|>`` for SD 1.x, ``!`` for SD 2.x).
    """

    def __init__(self, vocab_path: str, merges_path: str,
                 bos_token: str = '<|startoftext|>',
                 eos_token: str = '<|endoftext|>',
                 pad_token: Optional[str] = None):
        for path in (vocab_path, merges_path):
            if not os.path.isfile(path):
                raise ResourceUnavailable(
                    f"CLIP tokenizer requires {os.path.basename(path)}: "
                    f"{path} not found", stage='tokenizer')

        model = BPE.from_file(
            vocab_path,
            merges_path,
            unk_token=eos_token,
            continuing_subword_prefix='',
            end_of_word_suffix='</w>',
            fuse_unk=False,
        )
        tokenizer = Tokenizer(model)
        tokenizer.normalizer = normalizers.Sequence([
            normalizers.NFC(),
            normalizers.Replace(Regex(r"\s+"), " "),
            normalizers.Lowercase(),
        ])
        tokenizer.pre_tokenizer = pre_tokenizers.Sequence([
            pre_tokenizers.Split(Regex(_CLIP_PATTERN), behavior='removed',
                                 invert=True),
            pre_tokenizers.ByteLevel(add_prefix_space=False),
        ])
        tokenizer.decoder = ByteLevelDecoder()

        bos_id = tokenizer.token_to_id(bos_token)
        eos_id = tokenizer.token_to_id(eos_token)
        if bos_id is None or eos_id is None:
            raise ResourceUnavailable(
                f"vocabulary is missing {bos_token!r} or {eos_token!r}",
                stage='tokenizer')
        pad_token = pad_token or eos_token
        pad_id = tokenizer.token_to_id(pad_token)
        if pad_id is None:
            raise ResourceUnavailable(
                f"vocabulary is missing pad token {pad_token!r}",
                stage='tokenizer')

        tokenizer.post_processor = TemplateProcessing(
            single=f"{bos_token} $A {eos_token}",
            special_tokens=[(bos_token, bos_id), (eos_token, eos_id)],
        )
        self._tokenizer = tokenizer
        self.bos_token_id = bos_id
        self.eos_token_id = eos_id
        self.pad_token_id = pad_id

    @classmethod
    def from_directory(cls, path: str, **kwargs) -> 'CLIPTokenizer':
        return cls(os.path.join(path, 'vocab.json'),
                   os.path.join(path, 'merges.txt'), **kwargs)

    def encode(self, text: str) -> List[int]:
        """Token ids for *text*, wrapped in start / end markers."""
        return list(self._tokenizer.encode(text).ids)

    def decode(self, ids: List[int]) -> str:
        text = self._tokenizer.decode(ids, skip_special_tokens=True)
        return text.replace('</w>', ' ').strip()

    def __call__(self, text: str) -> List[int]:
        return self.encode(text)


__all__ = ['CLIPTokenizer']
