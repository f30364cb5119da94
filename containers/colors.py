"""Container color selection."""

from __future__ import annotations

import random
from collections.abc import Iterable

PALETTE: tuple[str, ...] = (
    "blue",
    "turquoise",
    "green",
    "yellow",
    "orange",
    "red",
    "pink",
    "purple",
)


class NoColorAvailable(Exception):
    """Raised when the deny-list covers the whole palette."""


class ColorSelector:
    """Picks palette colors at random, avoiding a deny-list."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def pick(self, deny_list: Iterable[str | None] = ()) -> str:
        denied = {color for color in deny_list if color}
        options = [color for color in PALETTE if color not in denied]
        if not options:
            raise NoColorAvailable(f"Every palette color is denied: {sorted(denied)}")
        return self.rng.choice(options)
