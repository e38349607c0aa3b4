# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Conversions between image tensors and PIL images.

Decoded image tensors are ``(B, 3, H, W)`` float buffers in ``[-1, 1]``.
"""
from __future__ import annotations

import numpy as np
from typing import List, Optional, Union

from PIL import Image

from ..errors import InvalidConfiguration
from ..tensor import TensorBuffer

# CLIP image normalisation used by the safety checker.
CLIP_MEAN = np.array([0.48145466, 0.4578275, 0.40821073], dtype=np.float32)
CLIP_STD = np.array([0.26862954, 0.26130258, 0.27577711], dtype=np.float32)


def to_uint8(images: TensorBuffer) -> np.ndarray:
    """``(B, C, H, W)`` in ``[-1, 1]`` → ``(B, H, W, C)`` uint8."""
    images.expect_shape((None, None, None, None), 'images')
    data = images.numpy().astype(np.float32)
    data = ((data + 1.0) * 127.5).round().clip(0, 255).astype(np.uint8)
    return data.transpose(0, 2, 3, 1)


def to_pil_images(images: TensorBuffer) -> List[Image.Image]:
    """Convert a decoded image batch to a list of RGB (or L) PIL images."""
    out = []
    for frame in to_uint8(images):
        if frame.shape[-1] == 1:
            frame = frame.squeeze(-1)
        out.append(Image.fromarray(frame))
    return out


def from_pil_image(image: Union[Image.Image, str],
                   width: Optional[int] = None,
                   height: Optional[int] = None) -> TensorBuffer:
    """Load a PIL image (or a path) as a ``(1, 3, H, W)`` buffer in ``[-1, 1]``.

    The image is resized to ``width`` x ``height`` when either is given.
    """
    if isinstance(image, str):
        with Image.open(image) as f:
            image = f.convert('RGB')
    else:
        image = image.convert('RGB')
    if width is not None or height is not None:
        size = (width or image.width, height or image.height)
        if size != image.size:
            image = image.resize(size, Image.LANCZOS)
    arr = np.asarray(image, dtype=np.float32) / 127.5 - 1.0
    return TensorBuffer._wrap(arr.transpose(2, 0, 1)[None].copy())


def clip_preprocess(images: TensorBuffer, size: int = 224) -> TensorBuffer:
    """Resize and normalise an image batch the way CLIP vision encoders expect."""
    frames = []
    for frame in to_pil_images(images):
        if frame.mode != 'RGB':
            frame = frame.convert('RGB')
        frame = frame.resize((size, size), Image.BICUBIC)
        arr = np.asarray(frame, dtype=np.float32) / 255.0
        frames.append(((arr - CLIP_MEAN) / CLIP_STD).transpose(2, 0, 1))
    if not frames:
        raise InvalidConfiguration("clip_preprocess() got an empty batch")
    return TensorBuffer._wrap(np.stack(frames).astype(np.float32))


__all__ = ['to_uint8', 'to_pil_images', 'from_pil_image', 'clip_preprocess',
           'CLIP_MEAN', 'CLIP_STD']
