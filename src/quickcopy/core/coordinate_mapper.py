# -*- coding: utf-8 -*-
"""
src/quickcopy/core/coordinate_mapper.py

Maps bounding boxes from recognized-image pixel space (origin top-left,
Y down) into display space (origin bottom-left, Y up). This is the only
place the vertical flip happens.
"""

from typing import Iterable, List

from .errors import InvalidInputError
from .ocr_result import Rect, TextBlock


def map_rect(rect: Rect, src_width: float, src_height: float,
             dst_width: float, dst_height: float) -> Rect:
    """
    Converts one rectangle between the two spaces.

    X and Y are scaled independently; the Y origin moves from the top edge
    to the bottom edge of the destination.

    Raises:
        InvalidInputError: If the source dimensions are not positive.
    """
    if src_width <= 0 or src_height <= 0:
        raise InvalidInputError(f"Invalid source dimensions {src_width}x{src_height}")

    scale_x = dst_width / src_width
    scale_y = dst_height / src_height

    return Rect(
        x=rect.x * scale_x,
        y=dst_height - (rect.y * scale_y) - (rect.height * scale_y),
        width=rect.width * scale_x,
        height=rect.height * scale_y,
    )


def map_blocks(blocks: Iterable[TextBlock], src_width: float, src_height: float,
               dst_width: float, dst_height: float) -> List[Rect]:
    """Maps the bounding box of every block, keeping block order."""
    return [
        map_rect(block.bounding_box, src_width, src_height, dst_width, dst_height)
        for block in blocks
    ]
