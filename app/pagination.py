"""Compact page-number windows for catalog navigation."""

from __future__ import annotations

from typing import Final, Union

ELLIPSIS: Final = "..."

PageToken = Union[int, str]


def pagination_window(
    current_page: int, total_pages: int, max_window_size: int = 7
) -> tuple[PageToken, ...]:
    """Return the page numbers and ellipsis markers to render.

    When there are more pages than fit, exactly ``max_window_size`` consecutive
    pages are shown around ``current_page``; the window slides rather than
    shrinks at either edge. The first and last pages are always reachable.
    """

    if total_pages <= 0:
        return ()

    size = max(int(max_window_size), 1)
    if size % 2 == 0:
        size += 1

    if total_pages <= size:
        return tuple(range(1, total_pages + 1))

    current = min(max(int(current_page), 1), total_pages)
    half = size // 2
    start = current - half
    end = current + half
    if start < 1:
        start, end = 1, size
    elif end > total_pages:
        start, end = total_pages - size + 1, total_pages

    tokens: list[PageToken] = []
    if start > 1:
        tokens.append(1)
        if start > 2:
            tokens.append(ELLIPSIS)
    tokens.extend(range(start, end + 1))
    if end < total_pages:
        if end < total_pages - 1:
            tokens.append(ELLIPSIS)
        tokens.append(total_pages)
    return tuple(tokens)
