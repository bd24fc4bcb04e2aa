import random
from collections import Counter

from constants import (ALL_KINDS, ALL_TILES, HONOR_ORDER, HONOR_SUIT_RANK,
                       SUIT_ORDER)
from errors import IllegalAction

_KINDS = frozenset(ALL_KINDS)


def full_deck():
    """The fixed 136-tile multiset, 4 copies of each of the 34 kinds."""
    return list(ALL_TILES)


def shuffle(deck, rng=None):
    """Return a uniformly shuffled copy of `deck` (Fisher-Yates via random.shuffle)."""
    shuffled = list(deck)
    (rng or random).shuffle(shuffled)
    return shuffled


def is_honor(tile):
    return tile in HONOR_ORDER


def suit_of(tile):
    # Honors share one pseudo-suit
    if is_honor(tile):
        return None
    return tile[-1]


def rank_of(tile):
    if is_honor(tile):
        return 0
    return int(tile[:-1])


def make_tile(rank, suit):
    return f"{rank}{suit}"


def tile_sort_key(tile):
    if is_honor(tile):
        return (HONOR_SUIT_RANK, HONOR_ORDER[tile])
    return (SUIT_ORDER[tile[-1]], int(tile[:-1]))


def canonical_order(tiles):
    """Sort tiles: wan, tong, tiao by rank, then honors in wind/dragon order."""
    return sorted(tiles, key=tile_sort_key)


def count_tiles(tiles):
    return Counter(tiles)


def is_valid_tile(value):
    return isinstance(value, str) and value in _KINDS


def parse_tile(value):
    """Validate a tile code coming from a command payload."""
    if not is_valid_tile(value):
        raise IllegalAction(f"Unknown tile {value!r}.")
    return value


def parse_tiles(values):
    if not isinstance(values, (list, tuple)):
        raise IllegalAction(f"Expected a list of tiles, got {values!r}.")
    return [parse_tile(v) for v in values]


def numbered_suits_in(tiles):
    return {tile[-1] for tile in tiles if not is_honor(tile)}
