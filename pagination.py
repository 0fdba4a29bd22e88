"""
pagination.py
=============
Page arithmetic shared by every discovery screen.

Registries disagree about result counts.  Modrinth and CurseForge report an
exact hit count; Spigot, Hangar, Polymart and Poggit do not, so their total is
a fixed estimate.  The two modes are kept apart: an exact source always uses
the reported count and an estimated source always uses its constant.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import List

DEFAULT_PAGE_SIZE = 20
PLUGIN_WINDOW_WIDTH = 9
MOD_WINDOW_WIDTH = 5


class CountingMode(str, Enum):
    """How a source's total result count is derived."""

    EXACT = "exact"
    ESTIMATED = "estimated"


def total_pages(total_count: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    """Number of pages for ``total_count`` results; never less than 1."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return max(1, math.ceil(max(0, total_count) / page_size))


def clamp_page(page: int, pages: int) -> int:
    """Clamp a 1-based page number into ``[1, pages]``."""
    return min(max(1, page), max(1, pages))


def page_window(current_page: int, total: int, width: int = PLUGIN_WINDOW_WIDTH) -> List[int]:
    """
    Page numbers to show around ``current_page``.

    The window is centred on the current page and shifted to stay within
    ``[1, total]``; it has exactly ``width`` entries whenever
    ``total >= width``.

    Args:
        current_page: 1-based page being viewed
        total:        Total number of pages (at least 1)
        width:        Odd number of visible page buttons

    Returns:
        Ascending list of page numbers
    """
    if width < 1:
        raise ValueError("width must be at least 1")
    total = max(1, total)
    current_page = clamp_page(current_page, total)

    start = max(1, current_page - width // 2)
    end = min(total, start + width - 1)
    if end - start < width - 1:
        start = max(1, end - width + 1)
    return list(range(start, end + 1))
