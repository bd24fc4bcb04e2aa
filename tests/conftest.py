import random

import pytest

from mahjong_game import MahjongGame
from tiles import canonical_order

SESSIONS = ['p0', 'p1', 'p2', 'p3']

# Thirteen-tile hands that cannot win or claim anything against the tiles used in the tests
SCATTERED_A = ['1w', '4w', '7w', '1b', '4b', '7b', '1t', '4t', '7t', 'dong', 'nan', 'xi', 'bei']
SCATTERED_B = ['2w', '5w', '8w', '2b', '5b', '8b', '2t', '8t', '9t', 'dong', 'nan', 'xi', 'bei']
SCATTERED_C = ['3w', '6w', '9w', '3b', '6b', '9b', '3t', '6t', '9t', 'dong', 'nan', 'xi', 'bei']


class Recorder:
    """Stands in for the transport: remembers every (session, event, payload) delivered."""

    def __init__(self):
        self.sent = []

    def __call__(self, session, event_name, payload):
        self.sent.append((session, event_name, payload))

    def names(self, session):
        return [name for s, name, _ in self.sent if s == session]

    def payloads(self, session, event_name):
        return [payload for s, name, payload in self.sent if s == session and name == event_name]

    def last(self, session, event_name):
        payloads = self.payloads(session, event_name)
        return payloads[-1] if payloads else None

    def clear(self):
        self.sent = []


class ManualTimer:
    def __init__(self, seconds, callback):
        self.seconds = seconds
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class ManualScheduler:
    """Claim timers that only run when a test fires them."""

    def __init__(self):
        self.timers = []

    def __call__(self, seconds, callback):
        timer = ManualTimer(seconds, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if not t.cancelled]

    @property
    def last(self):
        return self.timers[-1]


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def game(recorder, scheduler):
    """A table with four seated players, waiting for the host to start."""
    g = MahjongGame('TABLE1', deliver=recorder, scheduler=scheduler, rng=random.Random(7))
    g.open('p0', 'Alice')
    for session, name in zip(SESSIONS[1:], ['Bob', 'Carol', 'Dave']):
        g.add_player(session, name)
    return g


@pytest.fixture
def started(game, recorder):
    game.start_round('p0')
    recorder.clear()
    return game


def rig(game, hands, wall=None):
    """Replace dealt hands (seat -> tiles) and optionally the wall."""
    for seat, tiles in hands.items():
        game.seats[seat].hand = canonical_order(tiles)
    if wall is not None:
        game.wall = list(wall)
