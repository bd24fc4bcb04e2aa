import logging
import time
from collections import namedtuple

from constants import CLAIM_PRIORITY, SEATS, SEQUENCE
from errors import ClaimConflict, IllegalAction, StructuralImpossibility

logger = logging.getLogger(__name__)

PendingClaim = namedtuple('PendingClaim', ['seat', 'kind', 'timestamp', 'deadline'])


def claim_priority(kind):
    return CLAIM_PRIORITY.get(kind, 0)


class ClaimWindow:
    """Everything known about one discard while other seats decide whether to claim it."""

    def __init__(self, discarder_seat, tile, eligibility, deadline):
        self.discarder_seat = discarder_seat
        self.tile = tile
        self.eligibility = {seat: set(kinds) for seat, kinds in eligibility.items() if kinds}
        self.undecided = set(self.eligibility)
        self.deadline = deadline


class ClaimArbiter:
    """
    Resolves competing claims on the last discard through a single pending slot.
    Priority, highest first: win, quad, triplet, sequence. A claim replaces the pending one
    only with strictly higher priority, and is honored as soon as no seat that has not yet
    answered could still outrank it.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self.window = None
        self.pending = None

    @property
    def is_open(self):
        return self.window is not None

    def open(self, discarder_seat, tile, eligibility, timeout):
        """Start a claim window. Sequence claims are kept only for the seat after the discarder."""
        next_seat = (discarder_seat + 1) % SEATS
        filtered = {}
        for seat, kinds in eligibility.items():
            if seat == discarder_seat:
                continue
            kinds = set(kinds)
            if seat != next_seat:
                kinds.discard(SEQUENCE)
            filtered[seat] = kinds
        self.window = ClaimWindow(discarder_seat, tile, filtered, self.clock() + timeout)
        self.pending = None
        return self.window

    def _check_window(self, seat):
        if not self.window:
            raise IllegalAction("There is no discard to claim.")
        if seat not in self.window.eligibility:
            raise IllegalAction("You cannot claim this discard.")

    def request(self, seat, kind):
        """
        Put `seat`'s claim in the pending slot. Returns the seat whose claim was superseded,
        or None.
        """
        self._check_window(seat)
        if kind not in self.window.eligibility[seat]:
            raise StructuralImpossibility(f"No {kind} is possible with the discarded {self.window.tile}.")

        superseded = None
        if self.pending and self.pending.seat != seat:
            if claim_priority(kind) <= claim_priority(self.pending.kind):
                raise ClaimConflict(f"A {self.pending.kind} claim with equal or higher priority is pending.")
            superseded = self.pending.seat
            logger.debug("Seat %s %s claim superseded by seat %s %s", superseded, self.pending.kind, seat, kind)

        self.pending = PendingClaim(seat, kind, self.clock(), self.window.deadline)
        self.window.undecided.discard(seat)
        return superseded

    def pass_(self, seat):
        self._check_window(seat)
        self.window.undecided.discard(seat)
        if self.pending and self.pending.seat == seat:
            self.pending = None

    def _outranked_by_undecided(self):
        best = claim_priority(self.pending.kind)
        for seat in self.window.undecided:
            if any(claim_priority(kind) > best for kind in self.window.eligibility[seat]):
                return True
        return False

    def ready(self):
        """True once the window can be closed without waiting for anyone else."""
        if not self.window:
            return False
        if self.pending:
            return not self._outranked_by_undecided()
        return not self.window.undecided

    def settle(self):
        """Close the window, returning the claim to honor (None when everyone passed)."""
        pending = self.pending
        self.window = None
        self.pending = None
        return pending

    def expire(self):
        """Timeout: whatever is pending wins, silence counts as a pass."""
        if self.pending:
            logger.debug("Claim window expired with a pending %s from seat %s", self.pending.kind, self.pending.seat)
        return self.settle()

    def cancel(self):
        self.window = None
        self.pending = None
