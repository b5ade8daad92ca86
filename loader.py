# loader.py
"""
Texture loading on top of the TGA decoder.

- find_texture: locate <dir>/textures/<name>.{tga,png,jpg,jpeg}
- load_texture: decode by extension and pack every pixel into one uint32
  (bytes B, G, R, A in memory order), opaque when the source has no alpha
- to_pil_image: turn a decoded TGA buffer into a Pillow RGBA image
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image

from tgadecoder import TGAImage, get_orientation_flags, load_tga
from tgaformat import RGBA, PixelFormat

logger = logging.getLogger(__name__)

TEXTURE_EXTENSIONS = ("tga", "png", "jpg", "jpeg")
PIL_EXTENSIONS = ("png", "jpg", "jpeg")


class TextureLoadError(ValueError):
    """Raised when a texture has an unknown extension or channel count."""


def find_texture(name: str, game_dir: Union[str, Path],
                 base_dir: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Return the first existing texture file for `name`, or None.

    Each extension is tried in the game directory first, then in `base_dir`
    when one is given (a mod falling back to the base game).
    """
    name = name.replace("*", "#")
    for ext in TEXTURE_EXTENSIONS:
        for folder in (game_dir, base_dir):
            if folder is None:
                continue
            path = Path(folder) / "textures" / f"{name}.{ext}"
            if path.is_file():
                logger.debug("Texture %s found at %s", name, path)
                return path
    return None


def unpad_rows(data: bytes, width: int, height: int, stride: int, bytes_per_pixel: int) -> np.ndarray:
    """View a padded row buffer as a (height, width, bytes_per_pixel) array."""
    if width == 0 or height == 0:
        return np.zeros((height, width, bytes_per_pixel), dtype=np.uint8)
    rows = np.frombuffer(data, dtype=np.uint8, count=stride * height).reshape(height, stride)
    return rows[:, :width * bytes_per_pixel].reshape(height, width, bytes_per_pixel)


def _expand_555(pixels: np.ndarray, with_alpha: bool) -> np.ndarray:
    value = pixels[..., 0].astype(np.uint16) | (pixels[..., 1].astype(np.uint16) << 8)
    r = ((value >> 10) & 0x1F) << 3
    g = ((value >> 5) & 0x1F) << 3
    b = (value & 0x1F) << 3
    if with_alpha:
        a = np.where(value & 0x8000, 255, 0)
    else:
        a = np.full_like(value, 255)
    return np.dstack([r, g, b, a]).astype(np.uint8)


def pixel_array(image: TGAImage, thumbnail: bool = False) -> np.ndarray:
    """Return the main image (or thumbnail) as a (height, width, bytes_per_pixel) array
    with every pixel in its stored byte order."""
    if thumbnail:
        if image.thumbnail is None:
            raise ValueError("Image has no thumbnail")
        source = image.thumbnail
        width, height, stride, data = source.width, source.height, source.stride, source.image_data
    else:
        width, height, stride, data = image.width, image.height, image.stride, image.image_data

    bpp = image.header.bytes_per_pixel
    pixels = unpad_rows(data, width, height, stride, bpp)
    if not thumbnail and get_orientation_flags(image.header.first_pixel_destination)[1]:
        # the decoder reversed the bytes of each row, put pixels back in stored order
        pixels = pixels.reshape(height, width * bpp)[:, ::-1].reshape(height, width, bpp)
    return pixels


def to_pil_image(image: TGAImage, thumbnail: bool = False) -> Image.Image:
    """Convert the decoded buffer (or its thumbnail) to an RGBA Pillow image."""
    fmt = image.pixel_format
    pixels = pixel_array(image, thumbnail)
    height, width = pixels.shape[:2]

    # ---- 8-bit indexed ----
    if fmt == PixelFormat.INDEXED_8:
        palette = image.palette or [RGBA(i, i, i) for i in range(256)]
        lut = np.zeros((256, 4), dtype=np.uint8)
        lut[:len(palette)] = np.array([tuple(c) for c in palette[:256]], dtype=np.uint8)
        rgba = lut[pixels[..., 0]]
    # ---- 16-bit 5-5-5 ----
    elif fmt in (PixelFormat.RGB_555, PixelFormat.ARGB_1555):
        rgba = _expand_555(pixels, with_alpha=fmt == PixelFormat.ARGB_1555)
    # ---- 24-bit BGR ----
    elif fmt == PixelFormat.RGB_24:
        alpha = np.full(pixels.shape[:2], 255, dtype=np.uint8)
        rgba = np.dstack([pixels[..., 2], pixels[..., 1], pixels[..., 0], alpha])
    # ---- 32-bit BGRA ----
    elif fmt in (PixelFormat.RGB_32, PixelFormat.ARGB_32, PixelFormat.PARGB_32):
        rgba = np.ascontiguousarray(pixels[..., [2, 1, 0, 3]])
        if fmt == PixelFormat.RGB_32:
            rgba[..., 3] = 255
        elif fmt == PixelFormat.PARGB_32:
            return Image.frombytes("RGBa", (width, height), rgba.tobytes()).convert("RGBA")
    else:
        raise ValueError(f"Cannot convert pixel format {fmt.value}")

    return Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8))


def _pack_pixels(pixels: np.ndarray, path) -> np.ndarray:
    channels = pixels.shape[2]
    if channels == 3:
        alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
        pixels = np.concatenate([pixels, alpha], axis=2)
    elif channels != 4:
        raise TextureLoadError(f"{path} has bad bpp")
    return np.ascontiguousarray(pixels).view("<u4").reshape(-1)


def load_texture(path: Union[str, Path]) -> Tuple[np.ndarray, int, int]:
    """Return (pixels, width, height) with one little-endian uint32 per pixel."""
    path = Path(path)
    ext = path.suffix.lower().lstrip(".")
    if ext == "tga":
        tga = load_tga(path)
        width, height = tga.width, tga.height
        pixels = unpad_rows(tga.image_data, width, height, tga.stride, tga.header.bytes_per_pixel)
    elif ext in PIL_EXTENSIONS:
        with Image.open(path) as img:
            width, height = img.size
            rgba = np.asarray(img.convert("RGBA"))
        pixels = rgba[..., [2, 1, 0, 3]]
    else:
        raise TextureLoadError(f"{path} has bad format")

    logger.debug("Loaded texture %s (%dx%d, %d bytes per pixel)", path, width, height, pixels.shape[2])
    return _pack_pixels(pixels, path), width, height
