from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from loader import TextureLoadError, find_texture, load_texture, pixel_array, to_pil_image, unpad_rows
from tgadecoder import decode_tga
from tgaformat import DecoderOptions
from tgasamples import BOTTOM_LEFT, BOTTOM_RIGHT, TOP_LEFT, TOP_RIGHT, make_header, make_modern


def write(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


# ------------------ find_texture ------------------

def test_find_texture_replaces_star(tmp_path: Path) -> None:
    expected = write(tmp_path / "game" / "textures" / "#water1.png", b"x")
    assert find_texture("*water1", tmp_path / "game") == expected


def test_find_texture_prefers_tga_then_falls_back_to_base(tmp_path: Path) -> None:
    write(tmp_path / "mod" / "textures" / "wall.png", b"x")
    base_tga = write(tmp_path / "base" / "textures" / "wall.tga", b"x")
    # tga is tried in both folders before any png
    assert find_texture("wall", tmp_path / "mod", tmp_path / "base") == base_tga
    assert find_texture("wall", tmp_path / "mod") == tmp_path / "mod" / "textures" / "wall.png"


def test_find_texture_missing(tmp_path: Path) -> None:
    assert find_texture("nothing", tmp_path, tmp_path / "base") is None


# ------------------ load_texture ------------------

def test_load_texture_tga_strips_row_padding(tmp_path: Path) -> None:
    # 3x1, 24-bit: 9 pixel bytes padded to a 12 byte stride
    pixels = bytes([1, 2, 3, 4, 5, 6, 7, 8, 9])
    path = write(tmp_path / "t.tga", make_header(3, 1, pixel_depth=24, descriptor=TOP_RIGHT) + pixels)
    packed, width, height = load_texture(path)
    assert (width, height) == (3, 1)
    assert packed.dtype == np.dtype("<u4")
    assert packed.tolist() == [0xFF030201, 0xFF060504, 0xFF090807]


def test_load_texture_tga_32_bit(tmp_path: Path) -> None:
    pixels = bytes([10, 20, 30, 40, 50, 60, 70, 80])  # 1x2, top row first
    path = write(tmp_path / "t.tga", make_header(1, 2, pixel_depth=32, descriptor=TOP_RIGHT) + pixels)
    packed, width, height = load_texture(path)
    assert (width, height) == (1, 2)
    assert packed.tolist() == [0x281E140A, 0x50463C32]


def test_load_texture_png(tmp_path: Path) -> None:
    path = tmp_path / "t.png"
    Image.new("RGBA", (2, 1), (1, 2, 3, 255)).save(path)
    packed, width, height = load_texture(path)
    assert (width, height) == (2, 1)
    assert packed.tolist() == [0xFF010203, 0xFF010203]


def test_load_texture_rejects_indexed_tga(tmp_path: Path) -> None:
    path = write(tmp_path / "gray.tga", make_header(1, 1, pixel_depth=8, image_type=3) + b"\x00")
    with pytest.raises(TextureLoadError):
        load_texture(path)


def test_load_texture_rejects_unknown_extension(tmp_path: Path) -> None:
    path = write(tmp_path / "t.bmp", b"BM")
    with pytest.raises(TextureLoadError):
        load_texture(path)


# ------------------ to_pil_image ------------------

def test_unpad_rows() -> None:
    data = bytes([1, 2, 3, 0, 4, 5, 6, 0])
    assert unpad_rows(data, 1, 2, 4, 3).tolist() == [[[1, 2, 3]], [[4, 5, 6]]]


def test_to_pil_image_true_color() -> None:
    image = decode_tga(make_header(2, 1, pixel_depth=24) + bytes([30, 20, 10, 3, 2, 1]))
    pil = to_pil_image(image)
    assert pil.mode == "RGBA"
    assert pil.size == (2, 1)
    assert pil.getpixel((0, 0)) == (10, 20, 30, 255)
    assert pil.getpixel((1, 0)) == (1, 2, 3, 255)


def test_to_pil_image_indexed() -> None:
    header = make_header(2, 1, pixel_depth=8, image_type=1, cmap_type=1, cmap_length=2, cmap_entry_size=24)
    image = decode_tga(header + bytes([30, 20, 10, 3, 2, 1]) + bytes([1, 0]))
    pil = to_pil_image(image)
    assert pil.getpixel((0, 0)) == (1, 2, 3, 255)
    assert pil.getpixel((1, 0)) == (10, 20, 30, 255)


def test_to_pil_image_16_bit() -> None:
    # low byte first: 0x7C1F is red + blue, alpha bit clear
    legacy = decode_tga(make_header(1, 1, pixel_depth=16) + bytes([0x1F, 0x7C]))
    assert to_pil_image(legacy).getpixel((0, 0)) == (248, 0, 248, 255)

    modern = decode_tga(make_modern(make_header(1, 1, pixel_depth=16) + bytes([0x1F, 0x7C]), attributes_type=3))
    assert to_pil_image(modern).getpixel((0, 0)) == (248, 0, 248, 0)


def test_to_pil_image_premultiplied() -> None:
    body = make_header(1, 1, pixel_depth=32) + bytes([0, 0, 128, 128])  # B, G, R, A
    pil = to_pil_image(decode_tga(make_modern(body, attributes_type=4)))
    r, g, b, a = pil.getpixel((0, 0))
    assert a == 128
    assert r == pytest.approx(255, abs=1)
    assert (g, b) == (0, 0)


def test_to_pil_image_thumbnail() -> None:
    body = make_header(1, 1, pixel_depth=24, descriptor=BOTTOM_LEFT) + bytes([1, 2, 3])
    data = make_modern(body, postage_stamp_offset=len(body) + 495)
    data = data[:-26] + bytes([1, 1, 30, 20, 10]) + data[-26:]
    pil = to_pil_image(decode_tga(data), thumbnail=True)
    assert pil.size == (1, 1)
    assert pil.getpixel((0, 0)) == (10, 20, 30, 255)


def test_to_pil_image_without_thumbnail() -> None:
    image = decode_tga(make_header(1, 1, pixel_depth=24) + bytes([1, 2, 3]),
                       options=DecoderOptions(load_thumbnail=False))
    with pytest.raises(ValueError):
        to_pil_image(image, thumbnail=True)


def row_pixels(pil: Image.Image) -> list:
    return [[pil.getpixel((x, y)) for x in range(pil.width)] for y in range(pil.height)]


@pytest.mark.parametrize("descriptor", [TOP_LEFT, BOTTOM_LEFT, TOP_RIGHT, BOTTOM_RIGHT])
def test_to_pil_image_24_bit_keeps_stored_pixel_order(descriptor: int) -> None:
    image = decode_tga(make_header(2, 1, pixel_depth=24, descriptor=descriptor) + bytes([30, 20, 10, 3, 2, 1]))
    assert row_pixels(to_pil_image(image)) == [[(10, 20, 30, 255), (1, 2, 3, 255)]]


@pytest.mark.parametrize("descriptor", [TOP_LEFT, BOTTOM_LEFT])
def test_to_pil_image_32_bit_left_origin(descriptor: int) -> None:
    pixels = bytes([30, 20, 10, 255, 3, 2, 1, 255])  # B, G, R, A
    image = decode_tga(make_header(2, 1, pixel_depth=32, descriptor=descriptor) + pixels)
    assert row_pixels(to_pil_image(image)) == [[(10, 20, 30, 255), (1, 2, 3, 255)]]


@pytest.mark.parametrize("descriptor", [TOP_LEFT, BOTTOM_LEFT])
def test_to_pil_image_16_bit_left_origin(descriptor: int) -> None:
    pixels = bytes([0x1F, 0x7C, 0x00, 0x00])  # red + blue, then black
    image = decode_tga(make_header(2, 1, pixel_depth=16, descriptor=descriptor) + pixels)
    assert row_pixels(to_pil_image(image)) == [[(248, 0, 248, 255), (0, 0, 0, 255)]]


def test_to_pil_image_8_bit_bottom_left_flips_rows_only() -> None:
    # stored bottom row first: [1, 2] then [3, 4]
    image = decode_tga(make_header(2, 2, pixel_depth=8, image_type=3, descriptor=BOTTOM_LEFT) + bytes([1, 2, 3, 4]))
    assert pixel_array(image)[..., 0].tolist() == [[3, 4], [1, 2]]
    assert row_pixels(to_pil_image(image)) == [
        [(3, 3, 3, 255), (4, 4, 4, 255)],
        [(1, 1, 1, 255), (2, 2, 2, 255)],
    ]


def test_to_pil_image_8_bit_top_left() -> None:
    image = decode_tga(make_header(2, 1, pixel_depth=8, image_type=3, descriptor=TOP_LEFT) + bytes([10, 200]))
    assert row_pixels(to_pil_image(image)) == [[(10, 10, 10, 255), (200, 200, 200, 255)]]


def test_thumbnail_matches_main_image_for_bottom_left() -> None:
    pixels = bytes([30, 20, 10, 3, 2, 1, 9, 8, 7, 6, 5, 4])  # 2x2, 24-bit
    body = make_header(2, 2, pixel_depth=24, descriptor=BOTTOM_LEFT) + pixels
    data = make_modern(body, postage_stamp_offset=len(body) + 495)
    data = data[:-26] + bytes([2, 2]) + pixels + data[-26:]
    image = decode_tga(data)
    main = row_pixels(to_pil_image(image))
    assert main == [[(7, 8, 9, 255), (4, 5, 6, 255)], [(10, 20, 30, 255), (1, 2, 3, 255)]]
    assert row_pixels(to_pil_image(image, thumbnail=True)) == main
