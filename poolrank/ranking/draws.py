"""Chronological ordering of draws and "as of draw" truncation."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from .types import DrawInput, id_sort_key


def _draw_sort_key(draw: DrawInput) -> tuple[datetime, tuple[str, Any]]:
    # The id tie-break keeps equal-timestamp draws in a stable order.
    return draw.draw_date, id_sort_key(draw.draw_id)


def sort_draws(draws: Iterable[DrawInput]) -> list[DrawInput]:
    """Return ``draws`` sorted ascending by ``draw_date``."""
    return sorted(draws, key=_draw_sort_key)


def find_draw_index(
    sorted_draws: Sequence[DrawInput], draw_id: Any
) -> Optional[int]:
    """Return the position of ``draw_id`` in ``sorted_draws`` or ``None``."""
    if draw_id is None:
        return None
    for index, draw in enumerate(sorted_draws):
        if draw.draw_id == draw_id:
            return index
    return None


def draws_up_to(
    sorted_draws: Sequence[DrawInput], selected_draw_id: Any = None
) -> list[DrawInput]:
    """Truncate ``sorted_draws`` to everything up to and including a draw.

    Parameters
    ----------
    sorted_draws : Sequence[DrawInput]
        Draws already ordered by :func:`sort_draws`.
    selected_draw_id : Any, default: None
        Draw to view the ranking "as of". When omitted or not present in
        ``sorted_draws`` the full list is returned.
    """

    index = find_draw_index(sorted_draws, selected_draw_id)
    if index is None:
        return list(sorted_draws)
    return list(sorted_draws[: index + 1])


def resolve_cutoff(
    sorted_draws: Sequence[DrawInput], selected_draw_id: Any = None
) -> Optional[datetime]:
    """Return the reference timestamp of a ranking view.

    This is the selected draw's date when it exists, otherwise the date of the
    latest draw. ``None`` when there are no draws at all.
    """

    index = find_draw_index(sorted_draws, selected_draw_id)
    if index is not None:
        return sorted_draws[index].draw_date
    if sorted_draws:
        return sorted_draws[-1].draw_date
    return None


__all__ = ["draws_up_to", "find_draw_index", "resolve_cutoff", "sort_draws"]
