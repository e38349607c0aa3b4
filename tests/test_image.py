"""
Tests for latentkit.utils.image.
"""
import numpy as np
from PIL import Image

from latentkit import TensorBuffer
from latentkit.utils.image import clip_preprocess, from_pil_image, to_pil_images, to_uint8


def test_to_uint8_maps_range():
    data = np.stack([np.full((2, 2), v, dtype=np.float32) for v in (-1.0, 0.0, 1.0)])
    out = to_uint8(TensorBuffer(data[None]))
    assert out.shape == (1, 2, 2, 3)
    assert out.dtype == np.uint8
    assert tuple(out[0, 0, 0]) == (0, 128, 255)


def test_pil_round_trip(tmp_path):
    img = Image.new('RGB', (8, 4), (255, 0, 0))
    path = tmp_path / 'red.png'
    img.save(path)
    buf = from_pil_image(str(path))
    assert buf.shape == (1, 3, 4, 8)
    np.testing.assert_allclose(buf.numpy()[0, :, 0, 0], [1.0, -1.0, -1.0])
    back = to_pil_images(buf)[0]
    assert back.size == (8, 4)
    assert back.getpixel((0, 0)) == (255, 0, 0)


def test_from_pil_image_resizes():
    buf = from_pil_image(Image.new('RGB', (40, 30)), width=16, height=8)
    assert buf.shape == (1, 3, 8, 16)


def test_clip_preprocess_shape():
    images = TensorBuffer(np.zeros((2, 3, 16, 16), dtype=np.float32))
    out = clip_preprocess(images, size=32)
    assert out.shape == (2, 3, 32, 32)
    assert out.dtype.name == 'float32'
