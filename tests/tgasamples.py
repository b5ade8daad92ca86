"""Builders for small synthetic TGA files used across the tests."""

from __future__ import annotations

import struct

SIGNATURE = b"TRUEVISION-XFILE"

# image descriptor orientation bits
BOTTOM_RIGHT = 0x00
BOTTOM_LEFT = 0x10
TOP_RIGHT = 0x20
TOP_LEFT = 0x30


def make_header(width: int, height: int, pixel_depth: int = 24, image_type: int = 2,
                descriptor: int = TOP_RIGHT, id_length: int = 0, cmap_type: int = 0,
                cmap_length: int = 0, cmap_entry_size: int = 0) -> bytes:
    return struct.pack("<BBBHHBhhHHBB", id_length, cmap_type, image_type, 0, cmap_length,
                       cmap_entry_size, 0, 0, width, height, pixel_depth, descriptor)


def make_footer(ext_offset: int = 0, dev_offset: int = 0) -> bytes:
    return struct.pack("<ii", ext_offset, dev_offset) + SIGNATURE + b".\0"


def _fixed(text: bytes, size: int) -> bytes:
    return text.ljust(size, b"\0")


def make_extension(author: bytes = b"Jane Artist", comments: bytes = b"hello",
                   stamp=(7, 4, 2021, 13, 45, 30), job: bytes = b"job-1", job_time=(2, 30, 15),
                   software: bytes = b"Paint", version: int = 410, letter: bytes = b"b",
                   key_color_argb_disk=(0x11, 0x22, 0x33, 0x44), aspect=(4, 3), gamma=(22, 10),
                   color_correction_offset: int = 0, postage_stamp_offset: int = 0,
                   scan_line_offset: int = 0, attributes_type: int = 0) -> bytes:
    ext = struct.pack("<h", 495)
    ext += _fixed(author, 41) + _fixed(comments, 324)
    ext += struct.pack("<6H", *stamp)
    ext += _fixed(job, 41) + struct.pack("<3H", *job_time)
    ext += _fixed(software, 41) + struct.pack("<H", version) + letter
    ext += bytes(key_color_argb_disk)
    ext += struct.pack("<4H", aspect[0], aspect[1], gamma[0], gamma[1])
    ext += struct.pack("<3i", color_correction_offset, postage_stamp_offset, scan_line_offset)
    ext += bytes([attributes_type])
    assert len(ext) == 495
    return ext


def make_modern(body: bytes, attributes_type: int = 0, **ext_fields) -> bytes:
    """Append an extension area and footer to `body` (header + image data)."""
    ext_offset = len(body)
    ext = make_extension(attributes_type=attributes_type, **ext_fields)
    return body + ext + make_footer(ext_offset)
