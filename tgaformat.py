#!/usr/bin/env python3
"""
tgaformat.py: Truevision TGA structures and bit helpers

Holds:
- Field sizes and struct layouts of the header, footer and extension area
- Enums for the descriptor bits, image types and resulting pixel formats
- Dataclasses for the footer, header, extension area and thumbnail
- Bit extraction and 1-5-5-5 color unpacking
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import List, NamedTuple

# Byte lengths of the fixed TGA fields (little-endian throughout)
HEADER_BYTE_LENGTH = 18
FOOTER_BYTE_LENGTH = 26
FOOTER_SIGNATURE_OFFSET_FROM_END = 18
FOOTER_SIGNATURE_BYTE_LENGTH = 16
FOOTER_RESERVED_CHAR_BYTE_LENGTH = 1
EXT_AUTHOR_NAME_BYTE_LENGTH = 41
EXT_AUTHOR_COMMENTS_BYTE_LENGTH = 324
EXT_JOB_NAME_BYTE_LENGTH = 41
EXT_SOFTWARE_ID_BYTE_LENGTH = 41
EXT_SOFTWARE_VERSION_LETTER_BYTE_LENGTH = 1
EXT_FIXED_BYTE_LENGTH = 495
COLOR_CORRECTION_TABLE_LENGTH = 256
FOOTER_SIGNATURE = "TRUEVISION-XFILE"

# id_len, cmap_type, image_type, cmap_first, cmap_len, cmap_entry_size,
# x_origin, y_origin, width, height, pixel_depth, descriptor
TGA_HEADER_FMT = "<BBBHHBhhHHBB"
TGA_FOOTER_OFFSETS_FMT = "<ii"

SUPPORTED_PIXEL_DEPTHS = (8, 16, 24, 32)
COLOR_MAP_ENTRY_BYTES = {15: 2, 16: 2, 24: 3, 32: 4}


class TGAFormat(IntEnum):
    UNKNOWN = 0
    LEGACY = 100
    MODERN = 200


class ColorMapType(IntEnum):
    NO_COLOR_MAP = 0
    COLOR_MAP_INCLUDED = 1


class ImageType(IntEnum):
    NO_IMAGE_DATA = 0
    UNCOMPRESSED_COLOR_MAPPED = 1
    UNCOMPRESSED_TRUE_COLOR = 2
    UNCOMPRESSED_GRAY = 3
    RLE_COLOR_MAPPED = 9
    RLE_TRUE_COLOR = 10
    RLE_GRAY = 11

    @property
    def is_rle(self) -> bool:
        return self in (ImageType.RLE_COLOR_MAPPED, ImageType.RLE_TRUE_COLOR, ImageType.RLE_GRAY)

    @property
    def is_color_mapped(self) -> bool:
        return self in (ImageType.UNCOMPRESSED_COLOR_MAPPED, ImageType.RLE_COLOR_MAPPED)

    @property
    def is_gray(self) -> bool:
        return self in (ImageType.UNCOMPRESSED_GRAY, ImageType.RLE_GRAY)


class VerticalOrder(IntEnum):
    UNKNOWN = -1
    BOTTOM = 0
    TOP = 1


class HorizontalOrder(IntEnum):
    UNKNOWN = -1
    RIGHT = 0
    LEFT = 1


class FirstPixelDestination(IntEnum):
    UNKNOWN = 0
    TOP_LEFT = 1
    TOP_RIGHT = 2
    BOTTOM_LEFT = 3
    BOTTOM_RIGHT = 4


class RlePacketType(IntEnum):
    RAW = 0
    RUN_LENGTH = 1


class PixelFormat(Enum):
    UNDEFINED = "undefined"
    INDEXED_8 = "8bpp-indexed"
    RGB_555 = "16bpp-rgb555"
    ARGB_1555 = "16bpp-argb1555"
    RGB_24 = "24bpp-rgb"
    RGB_32 = "32bpp-rgb"
    ARGB_32 = "32bpp-argb"
    PARGB_32 = "32bpp-pargb"


class RGBA(NamedTuple):
    r: int
    g: int
    b: int
    a: int = 255


# ------------------ Bit helpers ------------------

def get_bits(byte: int, offset: int, count: int) -> int:
    """Return the `count`-bit field of `byte` starting at bit `offset` (0 = LSB)."""
    return (byte >> offset) & ((1 << count) - 1)


def unpack_555(high: int, low: int, keep_alpha: bool = True) -> RGBA:
    """Unpack a 1-5-5-5 color stored as ``A RRRRR GG | GGG BBBBB`` (high byte first).

    Channels are widened by a plain left shift of 3, without replicating the
    low bits. The single alpha bit becomes 0 or 255; with ``keep_alpha``
    false the color is returned opaque.
    """
    r = get_bits(high, 2, 5) << 3
    g = (get_bits(high, 0, 2) << 6) + (get_bits(low, 5, 3) << 3)
    b = get_bits(low, 0, 5) << 3
    a = get_bits(high, 7, 1) * 255 if keep_alpha else 255
    return RGBA(r, g, b, a)


# ------------------ Structures ------------------

@dataclass
class TGAFooter:
    extension_area_offset: int = 0
    developer_directory_offset: int = 0
    signature: str = ""
    reserved_character: str = ""


@dataclass
class TGAHeader:
    image_id_length: int = 0
    color_map_type: ColorMapType = ColorMapType.NO_COLOR_MAP
    image_type: ImageType = ImageType.NO_IMAGE_DATA
    color_map_first_entry_index: int = 0
    color_map_length: int = 0
    color_map_entry_size: int = 0
    x_origin: int = 0
    y_origin: int = 0
    width: int = 0
    height: int = 0
    pixel_depth: int = 0
    attribute_bits: int = 0
    vertical_order: VerticalOrder = VerticalOrder.UNKNOWN
    horizontal_order: HorizontalOrder = HorizontalOrder.UNKNOWN
    image_id_value: str = ""
    color_map: List[RGBA] = field(default_factory=list)

    @property
    def bytes_per_pixel(self) -> int:
        return self.pixel_depth // 8

    @property
    def bytes_per_color_map_entry(self) -> int:
        return COLOR_MAP_ENTRY_BYTES.get(self.color_map_entry_size, 0)

    @property
    def image_data_offset(self) -> int:
        # header, then the image id, then the color map
        return (HEADER_BYTE_LENGTH + self.image_id_length
                + self.color_map_length * self.bytes_per_color_map_entry)

    @property
    def first_pixel_destination(self) -> FirstPixelDestination:
        if (self.vertical_order == VerticalOrder.UNKNOWN
                or self.horizontal_order == HorizontalOrder.UNKNOWN):
            return FirstPixelDestination.UNKNOWN
        if self.vertical_order == VerticalOrder.BOTTOM:
            if self.horizontal_order == HorizontalOrder.LEFT:
                return FirstPixelDestination.BOTTOM_LEFT
            return FirstPixelDestination.BOTTOM_RIGHT
        if self.horizontal_order == HorizontalOrder.LEFT:
            return FirstPixelDestination.TOP_LEFT
        # TOP with any other horizontal order
        return FirstPixelDestination.TOP_RIGHT


@dataclass
class TGAExtensionArea:
    extension_size: int = 0
    author_name: str = ""
    author_comments: str = ""
    date_time_stamp: datetime = field(default_factory=datetime.now)
    job_name: str = ""
    job_time: timedelta = field(default_factory=timedelta)
    software_id: str = ""
    software_version: str = ""
    key_color: RGBA = RGBA(0, 0, 0, 0)
    pixel_aspect_ratio_numerator: int = 0
    pixel_aspect_ratio_denominator: int = 0
    gamma_numerator: int = 0
    gamma_denominator: int = 0
    color_correction_offset: int = 0
    postage_stamp_offset: int = 0
    scan_line_offset: int = 0
    attributes_type: int = 0
    scan_line_table: List[int] = field(default_factory=list)
    color_correction_table: List[RGBA] = field(default_factory=list)

    @property
    def pixel_aspect_ratio(self) -> float:
        if self.pixel_aspect_ratio_denominator > 0:
            return self.pixel_aspect_ratio_numerator / self.pixel_aspect_ratio_denominator
        return 0.0

    @property
    def gamma_ratio(self) -> float:
        if self.gamma_denominator > 0:
            return round(self.gamma_numerator / self.gamma_denominator, 1)
        return 1.0


@dataclass
class TGAThumbnail:
    """Postage-stamp image: always uncompressed, same pixel depth as the main image."""
    width: int
    height: int
    stride: int
    padding: int
    image_data: bytes


@dataclass(frozen=True)
class DecoderOptions:
    ignore_15bit_alpha: bool = False   # treat 15-bit color-map entries as opaque
    load_thumbnail: bool = True
