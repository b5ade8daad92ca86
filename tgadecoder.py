#!/usr/bin/env python3
"""
tgadecoder.py: Truevision TGA decoder (no Pillow)

Reads, in this order:
- Footer (TRUEVISION-XFILE signature, extension/developer offsets)
- Header info (image type, dimensions, pixel depth, orientation bits)
- Optional image id and color map
- Optional extension area (author, timestamps, gamma, scan-line and
  color-correction tables)
- Image pixel data, uncompressed or RLE, reordered top-to-bottom with each
  row padded to a 4-byte boundary
- Optional postage-stamp thumbnail
Returns:
    TGAImage with header, footer, extension area, pixel buffer, stride,
    padding, pixel format, palette and thumbnail
"""

from __future__ import annotations

import io
import logging
import os
import struct
from datetime import datetime, timedelta
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Union

from tgaformat import (
    COLOR_CORRECTION_TABLE_LENGTH,
    EXT_AUTHOR_COMMENTS_BYTE_LENGTH,
    EXT_AUTHOR_NAME_BYTE_LENGTH,
    EXT_JOB_NAME_BYTE_LENGTH,
    EXT_SOFTWARE_ID_BYTE_LENGTH,
    EXT_SOFTWARE_VERSION_LETTER_BYTE_LENGTH,
    FOOTER_BYTE_LENGTH,
    FOOTER_RESERVED_CHAR_BYTE_LENGTH,
    FOOTER_SIGNATURE,
    FOOTER_SIGNATURE_BYTE_LENGTH,
    FOOTER_SIGNATURE_OFFSET_FROM_END,
    SUPPORTED_PIXEL_DEPTHS,
    TGA_FOOTER_OFFSETS_FMT,
    TGA_HEADER_FMT,
    RGBA,
    ColorMapType,
    DecoderOptions,
    FirstPixelDestination,
    HorizontalOrder,
    ImageType,
    PixelFormat,
    RlePacketType,
    TGAExtensionArea,
    TGAFooter,
    TGAFormat,
    TGAHeader,
    TGAThumbnail,
    VerticalOrder,
    get_bits,
    unpack_555,
)

logger = logging.getLogger(__name__)

Source = Union[bytes, bytearray, str, Path, BinaryIO]


# ------------------ Errors ------------------

class TGAError(ValueError):
    """Raised when a TGA file cannot be decoded.

    ``phase`` names the reader that failed (footer, header, extension,
    image, thumbnail or load) and is repeated in the message.
    """

    phase = "load"

    def __init__(self, message: str, phase: Optional[str] = None):
        if phase is not None:
            self.phase = phase
        super().__init__(f"[{self.phase}] {message}")


class TGAIOError(TGAError):
    """Stream unreadable, unseekable, empty or shorter than a required field."""


class UnsupportedPixelDepthError(TGAError):
    phase = "header"


class UnsupportedImageTypeError(TGAError):
    phase = "header"


class UnsupportedColorMapEntrySizeError(TGAError):
    phase = "header"


class ColorMapRequiredError(TGAError):
    phase = "header"


class ColorMapLengthZeroError(TGAError):
    phase = "header"


class NoImageDataError(TGAError):
    phase = "image"


class ExtensionAreaCorruptError(TGAError):
    phase = "extension"


class MalformedRLEPacketError(TGAError):
    phase = "image"


# ------------------ Stream helpers ------------------

def _read_exact(fp, size: int, phase: str, what: str) -> bytes:
    data = fp.read(size)
    if len(data) != size:
        raise TGAIOError(f"Incomplete {what}: expected {size} bytes, got {len(data)}", phase)
    return data


def _unpack(fp, fmt: str, phase: str, what: str) -> tuple:
    return struct.unpack(fmt, _read_exact(fp, struct.calcsize(fmt), phase, what))


def _ascii(data: bytes) -> str:
    return data.decode("ascii", errors="replace").rstrip("\0")


def _stream_size(fp, phase: str) -> int:
    if not fp.seekable():
        raise TGAIOError("Stream is not seekable", phase)
    size = fp.seek(0, io.SEEK_END)
    if size <= 0:
        raise TGAIOError("Stream is empty", phase)
    return size


# ------------------ Footer ------------------

def read_tga_footer(fp) -> Tuple[TGAFormat, TGAFooter]:
    """Classify the file as legacy or modern by its trailing signature."""
    size = _stream_size(fp, "footer")
    if size < FOOTER_SIGNATURE_OFFSET_FROM_END:
        raise TGAIOError(f"Stream too short for a TGA file ({size} bytes)", "footer")

    fp.seek(-FOOTER_SIGNATURE_OFFSET_FROM_END, io.SEEK_END)
    signature = _ascii(_read_exact(fp, FOOTER_SIGNATURE_BYTE_LENGTH, "footer", "footer signature"))
    if signature != FOOTER_SIGNATURE:
        logger.debug("No footer signature, legacy TGA")
        return TGAFormat.LEGACY, TGAFooter()

    if size < FOOTER_BYTE_LENGTH:
        raise TGAIOError(f"Stream too short for a TGA footer ({size} bytes)", "footer")
    fp.seek(-FOOTER_BYTE_LENGTH, io.SEEK_END)
    ext_offset, dev_offset = _unpack(fp, TGA_FOOTER_OFFSETS_FMT, "footer", "footer offsets")
    # signature already read above
    _read_exact(fp, FOOTER_SIGNATURE_BYTE_LENGTH, "footer", "footer signature")
    reserved = _ascii(_read_exact(fp, FOOTER_RESERVED_CHAR_BYTE_LENGTH, "footer", "footer reserved character"))
    logger.debug("Modern TGA: extension area at %d, developer directory at %d", ext_offset, dev_offset)
    return TGAFormat.MODERN, TGAFooter(
        extension_area_offset=ext_offset,
        developer_directory_offset=dev_offset,
        signature=signature,
        reserved_character=reserved,
    )


# ------------------ Header ------------------

def _read_color_map_entry(fp, entry_size: int, options: DecoderOptions) -> RGBA:
    if entry_size in (15, 16):
        # stored low byte first
        lo, hi = _read_exact(fp, 2, "header", "color map entry")
        return unpack_555(hi, lo, keep_alpha=not (entry_size == 15 and options.ignore_15bit_alpha))
    if entry_size == 24:
        b, g, r = _read_exact(fp, 3, "header", "color map entry")
        return RGBA(r, g, b)
    if entry_size == 32:
        a, b, g, r = _read_exact(fp, 4, "header", "color map entry")
        return RGBA(r, g, b, a)
    raise UnsupportedColorMapEntrySizeError(
        f"Color map entry size must be 15, 16, 24 or 32 bits, got {entry_size}")


def check_pixel_depth(pixel_depth: int) -> None:
    if pixel_depth not in SUPPORTED_PIXEL_DEPTHS:
        raise UnsupportedPixelDepthError(
            f"Only 8, 16, 24 or 32 bit pixel depths are supported, got {pixel_depth}")


def read_tga_header(fp, options: Optional[DecoderOptions] = None) -> TGAHeader:
    options = options or DecoderOptions()
    fp.seek(0)
    (id_length, cmap_type, image_type, cmap_first, cmap_length, cmap_entry_size,
     x_origin, y_origin, width, height, pixel_depth, descriptor) = _unpack(
        fp, TGA_HEADER_FMT, "header", "TGA header")

    try:
        image_type = ImageType(image_type)
    except ValueError:
        raise UnsupportedImageTypeError(f"Unsupported image type {image_type}") from None
    check_pixel_depth(pixel_depth)

    header = TGAHeader(
        image_id_length=id_length,
        color_map_type=(ColorMapType.COLOR_MAP_INCLUDED if cmap_type == ColorMapType.COLOR_MAP_INCLUDED
                        else ColorMapType.NO_COLOR_MAP),
        image_type=image_type,
        color_map_first_entry_index=cmap_first,
        color_map_length=cmap_length,
        color_map_entry_size=cmap_entry_size,
        x_origin=x_origin,
        y_origin=y_origin,
        width=width,
        height=height,
        pixel_depth=pixel_depth,
        attribute_bits=get_bits(descriptor, 0, 4),
        horizontal_order=HorizontalOrder(get_bits(descriptor, 4, 1)),
        vertical_order=VerticalOrder(get_bits(descriptor, 5, 1)),
    )

    if header.image_id_length > 0:
        header.image_id_value = _ascii(_read_exact(fp, header.image_id_length, "header", "image id"))

    if header.color_map_type == ColorMapType.COLOR_MAP_INCLUDED:
        if not header.image_type.is_color_mapped:
            # keep the stream in step, the entries are never used
            fp.seek(header.color_map_length * header.bytes_per_color_map_entry, io.SEEK_CUR)
        elif header.color_map_length == 0:
            raise ColorMapLengthZeroError("Image type requires a color map and the color map length is zero")
        else:
            header.color_map = [_read_color_map_entry(fp, header.color_map_entry_size, options)
                                for _ in range(header.color_map_length)]
    elif header.image_type.is_color_mapped:
        raise ColorMapRequiredError("Image type requires a color map and none is included in the file")

    logger.debug("Header: %s %dx%d %d-bit, first pixel %s, data at %d",
                 header.image_type.name, header.width, header.height, header.pixel_depth,
                 header.first_pixel_destination.name, header.image_data_offset)
    return header


# ------------------ Extension area ------------------

def _read_extension_fields(fp, ext: TGAExtensionArea) -> None:
    phase = "extension"
    (ext.extension_size,) = _unpack(fp, "<h", phase, "extension size")
    ext.author_name = _ascii(_read_exact(fp, EXT_AUTHOR_NAME_BYTE_LENGTH, phase, "author name"))
    ext.author_comments = _ascii(_read_exact(fp, EXT_AUTHOR_COMMENTS_BYTE_LENGTH, phase, "author comments"))

    month, day, year, hour, minute, second = _unpack(fp, "<6H", phase, "date/time stamp")
    try:
        ext.date_time_stamp = datetime(year, month, day, hour, minute, second)
    except ValueError:
        logger.warning("Unusable date stamp %s/%s/%s %s:%s:%s, keeping default",
                     month, day, year, hour, minute, second)

    ext.job_name = _ascii(_read_exact(fp, EXT_JOB_NAME_BYTE_LENGTH, phase, "job name"))
    hours, minutes, seconds = _unpack(fp, "<3H", phase, "job time")
    ext.job_time = timedelta(hours=hours, minutes=minutes, seconds=seconds)
    ext.software_id = _ascii(_read_exact(fp, EXT_SOFTWARE_ID_BYTE_LENGTH, phase, "software id"))
    (version,) = _unpack(fp, "<H", phase, "software version")
    letter = _ascii(_read_exact(fp, EXT_SOFTWARE_VERSION_LETTER_BYTE_LENGTH, phase, "software version letter"))
    ext.software_version = f"{version / 100.0:.2f}{letter}"

    # disk order is A, R, B, G
    a, r, b, g = _read_exact(fp, 4, phase, "key color")
    ext.key_color = RGBA(r, g, b, a)
    (ext.pixel_aspect_ratio_numerator, ext.pixel_aspect_ratio_denominator,
     ext.gamma_numerator, ext.gamma_denominator) = _unpack(fp, "<4H", phase, "aspect ratio and gamma")
    (ext.color_correction_offset, ext.postage_stamp_offset,
     ext.scan_line_offset) = _unpack(fp, "<3i", phase, "table offsets")
    (ext.attributes_type,) = _unpack(fp, "<B", phase, "attributes type")


def read_tga_extension_area(fp, footer: TGAFooter, header: TGAHeader) -> TGAExtensionArea:
    ext = TGAExtensionArea()
    if footer.extension_area_offset <= 0:
        return ext

    try:
        fp.seek(footer.extension_area_offset)
        _read_extension_fields(fp, ext)

        if ext.scan_line_offset > 0:
            fp.seek(ext.scan_line_offset)
            ext.scan_line_table = list(_unpack(fp, f"<{header.height}I", "extension", "scan line table"))

        if ext.color_correction_offset > 0:
            fp.seek(ext.color_correction_offset)
            ext.color_correction_table = []
            for _ in range(COLOR_CORRECTION_TABLE_LENGTH):
                a, r, b, g = _unpack(fp, "<4H", "extension", "color correction entry")
                ext.color_correction_table.append(RGBA(r, g, b, a))
    except (TGAIOError, OSError, struct.error) as exc:
        raise ExtensionAreaCorruptError(
            f"Extension area at offset {footer.extension_area_offset} is corrupt: {exc}") from exc

    logger.debug("Extension area: attributes type %d, postage stamp at %d, %d scan lines, %d color corrections",
                 ext.attributes_type, ext.postage_stamp_offset,
                 len(ext.scan_line_table), len(ext.color_correction_table))
    return ext


# ------------------ Image data ------------------

def get_orientation_flags(destination: FirstPixelDestination) -> Tuple[bool, bool]:
    """Return (reverse row order, reverse bytes within each row)."""
    if destination == FirstPixelDestination.TOP_LEFT:
        return False, True
    if destination == FirstPixelDestination.TOP_RIGHT:
        return False, False
    if destination == FirstPixelDestination.BOTTOM_LEFT:
        return True, True
    # BOTTOM_RIGHT and UNKNOWN
    return True, False


def get_stride(width: int, pixel_depth: int) -> Tuple[int, int]:
    """Return (stride, padding) for a row aligned to 32 bits."""
    stride = ((width * pixel_depth + 31) & ~31) >> 3
    padding = stride - (width * pixel_depth + 7) // 8
    return stride, padding


def _append_to_rows(rows: List[bytes], row: bytearray, data: bytes, row_bytes: int) -> bytearray:
    # a packet may end one row and start the next
    pos = 0
    while pos < len(data):
        take = min(row_bytes - len(row), len(data) - pos)
        row += data[pos:pos + take]
        pos += take
        if len(row) == row_bytes:
            rows.append(bytes(row))
            row = bytearray()
    return row


def decode_tga_rle(fp, row_bytes: int, bytes_per_pixel: int, expected_bytes: int) -> List[bytes]:
    """TGA RLE decoding into rows of ``row_bytes`` bytes."""
    rows: List[bytes] = []
    row = bytearray()
    decoded = 0
    while decoded < expected_bytes:
        packet = _read_exact(fp, 1, "image", "RLE packet header")[0]
        packet_type = get_bits(packet, 7, 1)
        count = get_bits(packet, 0, 7) + 1
        if packet_type == RlePacketType.RUN_LENGTH:
            data = _read_exact(fp, bytes_per_pixel, "image", "RLE run-length pixel") * count
        elif packet_type == RlePacketType.RAW:
            data = _read_exact(fp, count * bytes_per_pixel, "image", "RLE raw packet")
        else:
            raise MalformedRLEPacketError(f"Unknown RLE packet type {packet_type}")
        decoded += len(data)
        row = _append_to_rows(rows, row, data, row_bytes)
    return rows


def _assemble_rows(rows: List[bytes], reverse_rows: bool, reverse_row_bytes: bool, padding: int) -> bytes:
    if reverse_rows:
        rows = rows[::-1]
    pad = bytes(padding)
    out = bytearray()
    for row in rows:
        out += row[::-1] if reverse_row_bytes else row
        out += pad
    return bytes(out)


def read_tga_image_data(fp, header: TGAHeader) -> Tuple[bytes, int, int]:
    """Return (image_data, stride, padding) with rows top-to-bottom."""
    if header.image_data_offset <= 0:
        raise NoImageDataError("No image data in file")

    stride, padding = get_stride(header.width, header.pixel_depth)
    row_bytes = header.width * header.bytes_per_pixel
    total_bytes = row_bytes * header.height
    fp.seek(header.image_data_offset)

    if header.image_type.is_rle:
        rows = decode_tga_rle(fp, row_bytes, header.bytes_per_pixel, total_bytes)[:header.height]
    else:
        rows = [_read_exact(fp, row_bytes, "image", f"image row {y}") for y in range(header.height)]

    reverse_rows, reverse_row_bytes = get_orientation_flags(header.first_pixel_destination)
    logger.debug("Image data: %d rows of %d bytes, stride %d, padding %d, reverse rows=%s, reverse bytes=%s",
                 len(rows), row_bytes, stride, padding, reverse_rows, reverse_row_bytes)
    return _assemble_rows(rows, reverse_rows, reverse_row_bytes, padding), stride, padding


# ------------------ Pixel format / palette ------------------

def get_pixel_format(header: TGAHeader, tga_format: TGAFormat, ext: TGAExtensionArea) -> PixelFormat:
    depth = header.pixel_depth
    modern = tga_format == TGAFormat.MODERN
    attributes = ext.attributes_type
    if depth == 8:
        return PixelFormat.INDEXED_8
    if depth == 16:
        if modern and attributes == 3:
            return PixelFormat.ARGB_1555
        return PixelFormat.RGB_555
    if depth == 24:
        return PixelFormat.RGB_24
    if depth == 32:
        if not modern or attributes == 2:
            return PixelFormat.RGB_32
        if attributes == 4:
            return PixelFormat.PARGB_32
        return PixelFormat.ARGB_32
    return PixelFormat.UNDEFINED


def build_palette(header: TGAHeader, ext: TGAExtensionArea) -> List[RGBA]:
    if header.color_map:
        if ext.attributes_type in (0, 1):
            # alpha is not meaningful, show the colors opaque
            return [color._replace(a=255) for color in header.color_map]
        return list(header.color_map)
    if header.pixel_depth == 8 and header.image_type.is_gray:
        return [RGBA(i, i, i) for i in range(256)]
    return []


# ------------------ Thumbnail ------------------

def read_tga_thumbnail(fp, header: TGAHeader, ext: TGAExtensionArea) -> Optional[TGAThumbnail]:
    if ext.postage_stamp_offset <= 0:
        return None
    try:
        fp.seek(ext.postage_stamp_offset)
        width, height = _read_exact(fp, 2, "thumbnail", "thumbnail size")
        stride, padding = get_stride(width, header.pixel_depth)
        row_bytes = width * header.bytes_per_pixel
        # thumbnails are never compressed
        rows = [_read_exact(fp, row_bytes, "thumbnail", f"thumbnail row {y}") for y in range(height)]
    except (TGAError, OSError, struct.error) as exc:
        logger.warning("Ignoring unreadable thumbnail at offset %d: %s", ext.postage_stamp_offset, exc)
        return None

    reverse_rows, _ = get_orientation_flags(header.first_pixel_destination)
    return TGAThumbnail(
        width=width,
        height=height,
        stride=stride,
        padding=padding,
        image_data=_assemble_rows(rows, reverse_rows, False, padding),
    )


# ------------------ Facade ------------------

def _read_source(source: Source) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, Path)):
        return Path(source).read_bytes()
    return source.read()


class TGAImage:
    """A decoded TGA file.

    Pass ``header`` to decode pixel data whose header was parsed elsewhere;
    the stream's own header is then never read, also on later loads after
    a failed one.
    """

    def __init__(self, header: Optional[TGAHeader] = None, options: Optional[DecoderOptions] = None):
        self.options = options or DecoderOptions()
        self.supplied_header = header
        self.clear()

    def clear(self) -> None:
        self.file_name = ""
        self.format = TGAFormat.UNKNOWN
        self.footer = TGAFooter()
        self.header = TGAHeader()
        self.extension_area = TGAExtensionArea()
        self.image_data = b""
        self.stride = 0
        self.padding = 0
        self.pixel_format = PixelFormat.UNDEFINED
        self.palette: List[RGBA] = []
        self.thumbnail: Optional[TGAThumbnail] = None

    @property
    def width(self) -> int:
        return self.header.width

    @property
    def height(self) -> int:
        return self.header.height

    def load(self, source: Source) -> "TGAImage":
        try:
            data = _read_source(source)
            if not data:
                raise TGAIOError("Could not read file, it is empty")
            with io.BytesIO(data) as fp:
                self.format, self.footer = read_tga_footer(fp)
                if self.supplied_header is None:
                    self.header = read_tga_header(fp, self.options)
                else:
                    check_pixel_depth(self.supplied_header.pixel_depth)
                    self.header = self.supplied_header
                self.extension_area = read_tga_extension_area(fp, self.footer, self.header)
                self.image_data, self.stride, self.padding = read_tga_image_data(fp, self.header)
                self.pixel_format = get_pixel_format(self.header, self.format, self.extension_area)
                if self.options.load_thumbnail:
                    self.thumbnail = read_tga_thumbnail(fp, self.header, self.extension_area)
                if self.pixel_format == PixelFormat.INDEXED_8:
                    self.palette = build_palette(self.header, self.extension_area)
        except TGAError:
            self.clear()
            raise
        except (OSError, struct.error) as exc:
            self.clear()
            raise TGAIOError(f"Could not read file: {exc}") from exc
        return self


def decode_tga(source: Source, header: Optional[TGAHeader] = None,
               options: Optional[DecoderOptions] = None) -> TGAImage:
    return TGAImage(header=header, options=options).load(source)


def load_tga(path: Union[str, Path], options: Optional[DecoderOptions] = None) -> TGAImage:
    path = Path(path)
    if path.suffix.lower() != ".tga":
        raise TGAIOError(f"File '{path}' must have an extension of '.tga'")
    if not path.is_file():
        raise FileNotFoundError(f"Could not find file '{path}' on disk")
    if path.stat().st_size == 0:
        raise TGAIOError(f"Could not read file '{path}', it is empty")
    image = decode_tga(path, options=options)
    image.file_name = str(path)
    return image


def describe_tga(image: TGAImage) -> dict:
    header, ext = image.header, image.extension_area
    info = {
        "Filename": os.path.basename(image.file_name) if image.file_name else "(memory)",
        "Format": "Truevision TGA (new)" if image.format == TGAFormat.MODERN else "Truevision TGA (original)",
        "Image Type": f"{header.image_type.name} ({int(header.image_type)})",
        "Image Dimensions": f"{header.width}x{header.height}",
        "Origin": f"{header.x_origin}, {header.y_origin}",
        "Pixel Depth": header.pixel_depth,
        "Pixel Format": image.pixel_format.value,
        "First Pixel": header.first_pixel_destination.name,
        "Attribute Bits": header.attribute_bits,
        "Color Map": (f"{header.color_map_length} x {header.color_map_entry_size}-bit"
                      if header.color_map_type == ColorMapType.COLOR_MAP_INCLUDED else "None"),
        "Stride": image.stride,
        "Padding": image.padding,
    }
    if header.image_id_value:
        info["Image ID"] = header.image_id_value
    if image.format == TGAFormat.MODERN and image.footer.extension_area_offset > 0:
        info.update({
            "Author": ext.author_name,
            "Comments": ext.author_comments,
            "Date": ext.date_time_stamp.strftime("%Y-%m-%d %H:%M:%S"),
            "Job": f"{ext.job_name} ({ext.job_time})",
            "Software": f"{ext.software_id} {ext.software_version}".strip(),
            "Key Color": tuple(ext.key_color),
            "Aspect Ratio": ext.pixel_aspect_ratio,
            "Gamma": ext.gamma_ratio,
            "Attributes Type": ext.attributes_type,
        })
    info["Thumbnail"] = f"{image.thumbnail.width}x{image.thumbnail.height}" if image.thumbnail else "None"
    return info


if __name__ == "__main__":
    import sys
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    if len(sys.argv) < 2:
        print("Usage: python tgadecoder.py <file.tga>")
    else:
        tga = load_tga(Path(sys.argv[1]))
        for k, v in describe_tga(tga).items():
            print(f"{k}: {v}")
        print(f"Palette entries: {len(tga.palette) if tga.palette else 'None'}")
