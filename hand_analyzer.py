from collections import namedtuple

from constants import (BASE_MULTIPLIER, FAN_ALL_ONE_SUIT, FAN_ALL_TRIPLETS,
                       FAN_BASELINE, FAN_MIXED_ONE_SUIT, FAN_SELF_DRAWN,
                       FAN_TABLE, GROUPS_PER_HAND, MELD_SEQUENCE, MELD_TRIPLET,
                       QUAD, SEQUENCE, TRIPLET, WIN)
from tiles import (canonical_order, count_tiles, is_honor, make_tile,
                   numbered_suits_in, rank_of, suit_of)

PAIR = "pair"

Meld = namedtuple('Meld', ['kind', 'tiles'])
Meld.__doc__ = "An exposed group of 3 or 4 tiles. Never changes once formed."


def make_meld(kind, tiles):
    return Meld(kind, tuple(canonical_order(tiles)))


def meld_payload(meld):
    return {'type': meld.kind, 'tiles': list(meld.tiles)}


class WinScore(namedtuple('WinScore', ['categories', 'multiplier'])):
    __slots__ = ()

    @property
    def names(self):
        return [FAN_TABLE[category][1] for category in self.categories]

    def to_payload(self):
        return {
            'categories': list(self.categories),
            'names': self.names,
            'multiplier': self.multiplier,
        }


def _remove_tiles(tiles, wanted):
    """Remove one copy of each wanted tile from a sorted tuple, or None if one is missing."""
    remaining = list(tiles)
    for tile in wanted:
        try:
            remaining.remove(tile)
        except ValueError:
            return None
    return tuple(remaining)


def _search(tiles, groups_needed, pair_found):
    """
    Recursive backtracking over a sorted tuple of concealed tiles.
    Every call consumes the lowest tile as the start of a triplet, a run or the pair,
    and all three branches are explored so no valid grouping is missed.
    """
    if not tiles:
        if groups_needed == 0 and pair_found:
            yield []
        return

    tile = tiles[0]

    # Option 1: triplet of the lowest tile
    if groups_needed and tiles[1:3] == (tile, tile):
        for rest in _search(tiles[3:], groups_needed - 1, pair_found):
            yield [(MELD_TRIPLET, tiles[:3])] + rest

    # Option 2: run starting at the lowest tile, numbered suits only
    if groups_needed and not is_honor(tile) and rank_of(tile) <= 7:
        suit, rank = suit_of(tile), rank_of(tile)
        run = (tile, make_tile(rank + 1, suit), make_tile(rank + 2, suit))
        remaining = _remove_tiles(tiles, run)
        if remaining is not None:
            for rest in _search(remaining, groups_needed - 1, pair_found):
                yield [(MELD_SEQUENCE, run)] + rest

    # Option 3: the pair, only once
    if not pair_found and tiles[1:2] == (tile,):
        for rest in _search(tiles[2:], groups_needed, True):
            yield [(PAIR, tiles[:2])] + rest


def decompositions(tiles, melds=()):
    """
    Yield every way the concealed tiles plus exposed melds form four groups and a pair.
    Each decomposition is a list of (group_kind, tiles) with the melds first.
    """
    groups_needed = GROUPS_PER_HAND - len(melds)
    if groups_needed < 0 or len(tiles) != 3 * groups_needed + 2:
        return
    exposed = [(meld.kind, tuple(meld.tiles)) for meld in melds]
    for groups in _search(tuple(canonical_order(tiles)), groups_needed, False):
        yield exposed + groups


def is_winning_hand(tiles, melds=()):
    return next(decompositions(tiles, melds), None) is not None


def find_sequence_claims(hand, discarded_tile):
    """
    Every run containing the discarded tile whose two other tiles are in the hand.
    Honor tiles never form runs.
    """
    if is_honor(discarded_tile):
        return []
    suit = suit_of(discarded_tile)
    rank = rank_of(discarded_tile)
    combinations = []
    for start in (rank - 2, rank - 1, rank):
        if start < 1 or start + 2 > 9:
            continue
        run = [make_tile(r, suit) for r in range(start, start + 3)]
        needed = list(run)
        needed.remove(discarded_tile)
        if _remove_tiles(tuple(hand), needed) is not None:
            combinations.append(run)
    return combinations


def can_triplet(hand, discarded_tile):
    return list(hand).count(discarded_tile) >= 2


def can_quad(hand, discarded_tile):
    return list(hand).count(discarded_tile) >= 3


def can_concealed_quad(hand):
    """The first tile kind (canonical order) held four times, or None."""
    counts = count_tiles(hand)
    for tile in canonical_order(counts):
        if counts[tile] == 4:
            return tile
    return None


def claim_options(hand, melds, discarded_tile, may_sequence):
    """Claim kinds a non-discarding seat could make against `discarded_tile`."""
    options = set()
    if is_winning_hand(list(hand) + [discarded_tile], melds):
        options.add(WIN)
    if can_quad(hand, discarded_tile):
        options.add(QUAD)
    if can_triplet(hand, discarded_tile):
        options.add(TRIPLET)
    if may_sequence and find_sequence_claims(hand, discarded_tile):
        options.add(SEQUENCE)
    return options


def _is_all_triplets(tiles, melds):
    if any(meld.kind == MELD_SEQUENCE for meld in melds):
        return False
    for groups in decompositions(tiles, melds):
        if all(kind != MELD_SEQUENCE for kind, _ in groups):
            return True
    return False


def score_win(tiles, melds=(), is_self_drawn=False):
    """
    Fan for a winning hand. Categories stack additively on a base multiplier of 1,
    except that the mixed one-suit category is skipped when the all-one-suit one applies.
    """
    all_tiles = list(tiles)
    for meld in melds:
        all_tiles.extend(meld.tiles)

    categories = []
    if is_self_drawn:
        categories.append(FAN_SELF_DRAWN)
    if _is_all_triplets(tiles, melds):
        categories.append(FAN_ALL_TRIPLETS)

    suits = numbered_suits_in(all_tiles)
    has_honors = any(is_honor(tile) for tile in all_tiles)
    if len(suits) == 1 and not has_honors:
        categories.append(FAN_ALL_ONE_SUIT)
    elif len(suits) == 1 and has_honors:
        categories.append(FAN_MIXED_ONE_SUIT)

    if not categories:
        categories.append(FAN_BASELINE)

    multiplier = BASE_MULTIPLIER + sum(FAN_TABLE[category][0] for category in categories)
    return WinScore(tuple(categories), multiplier)
