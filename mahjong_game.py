import logging
import random
import threading

from claim_arbiter import ClaimArbiter, claim_priority
from constants import (AWAITING_CLAIMS, AWAITING_DISCARD, DEALING,
                       DEFAULT_CLAIM_TIMEOUT, FULL_HAND_SIZE,
                       INITIAL_HAND_SIZE, MELD_CONCEALED_QUAD, MELD_QUAD,
                       MELD_SEQUENCE, MELD_TRIPLET, QUAD, ROUND_COMPLETE,
                       SEATING, SEATS, SEQUENCE, TRIPLET, WIN)
from errors import IllegalAction, StructuralImpossibility
from events import Event, EventType
from hand_analyzer import (can_concealed_quad, claim_options,
                           find_sequence_claims, is_winning_hand, make_meld,
                           meld_payload, score_win)
from tiles import canonical_order, full_deck, parse_tile, parse_tiles, shuffle
from utils import eventlet_spawn_after

logger = logging.getLogger(__name__)


class Player:
    def __init__(self, session, name, seat):
        self.session = session
        self.name = name
        self.seat = seat
        self.score = 0
        self.hand = [] # concealed, canonical order
        self.melds = []
        self.discards = []

    def reset_round(self):
        self.hand = []
        self.melds = []
        self.discards = []

    @property
    def hand_size(self):
        # A quad counts as three: its fourth tile is paid back by the replacement draw
        return len(self.hand) + 3 * len(self.melds)

    def add_tiles(self, tiles):
        self.hand = canonical_order(self.hand + list(tiles))

    def remove_tiles(self, tiles):
        for tile in tiles:
            self.hand.remove(tile)

    def public_view(self):
        return {
            'seat': self.seat,
            'name': self.name,
            'hand_size': len(self.hand),
            'melds': [meld_payload(m) for m in self.melds],
            'discards': list(self.discards),
            'score': self.score,
        }


class MahjongGame:
    """
    One table: four seats, the wall, and the round state machine.

    Every public method takes the table lock, validates the request, and only then
    mutates state. Invalid requests raise a GameError and leave the table untouched.
    Events are handed to `deliver(session, event_name, payload)` while the lock is held,
    so all seats see one table's events in the order they were produced.
    """

    def __init__(self, table_id, deliver=None, claim_timeout=DEFAULT_CLAIM_TIMEOUT,
                 scheduler=None, rng=None):
        self.table_id = table_id
        self.deliver = deliver
        self.claim_timeout = claim_timeout
        self.scheduler = scheduler or eventlet_spawn_after
        self.rng = rng or random.Random()

        self.seats = [None] * SEATS
        self.host_session = None
        self.phase = SEATING
        self.wall = []
        self.dealer_seat = 0
        self.current_seat = None
        self.last_discard = None # (seat, tile) while the discard can still be claimed
        self.drew_this_turn = False
        self.outcome = None
        self.round_number = 0

        self.arbiter = ClaimArbiter()
        self.sequence_choice = None
        self.claim_timer = None
        self._window_id = 0

        # Commands from four sessions arrive concurrently
        self.game_lock = threading.RLock()

    # --- Seating ---

    @property
    def players(self):
        return [p for p in self.seats if p is not None]

    def sessions(self):
        return [p.session for p in self.players]

    def player_count(self):
        return len(self.players)

    def is_empty(self):
        return not self.players

    def find_player(self, session):
        for player in self.players:
            if player.session == session:
                return player
        return None

    def open(self, session, name):
        """Seat the host. Called once, right after the table is created."""
        with self.game_lock:
            player = self._seat_player(session, name)
            self.host_session = session
            self.dealer_seat = player.seat
            logger.info("Table %s created by %s", self.table_id, name)
            self._emit(Event.to_session(session, EventType.TABLE_CREATED, {
                'table_id': self.table_id,
                'seat': player.seat,
                'players': self._roster(),
            }))
            return player.seat

    def add_player(self, session, name):
        with self.game_lock:
            if self.phase != SEATING:
                raise IllegalAction("The round has already started.")
            if self.find_player(session):
                raise IllegalAction("You are already seated at this table.")
            if self.player_count() >= SEATS:
                raise IllegalAction("The table is full.")
            player = self._seat_player(session, name)
            if self.host_session is None:
                self.host_session = session
            logger.info("Player %s took seat %s at table %s", name, player.seat, self.table_id)
            self._emit(Event.to_table(EventType.PLAYER_JOINED, {
                'seat': player.seat,
                'players': self._roster(),
            }))
            return player.seat

    def _seat_player(self, session, name):
        seat = self.seats.index(None)
        player = Player(session, name, seat)
        self.seats[seat] = player
        return player

    def remove_player(self, session):
        """
        Free the player's seat. A running round cannot continue with three players,
        so it is abandoned and the table goes back to seating.
        Returns the number of players still seated.
        """
        with self.game_lock:
            player = self.find_player(session)
            if not player:
                raise IllegalAction("You are not seated at this table.")
            self.seats[player.seat] = None
            game_stopped = self.phase != SEATING
            if session == self.host_session:
                self.host_session = self.players[0].session if self.players else None
            if game_stopped:
                self._abort_round()
            logger.info("Player %s left table %s (round stopped: %s)", player.name, self.table_id, game_stopped)
            if self.players:
                self._emit(Event.to_table(EventType.PLAYER_LEFT, {
                    'seat': player.seat,
                    'players': self._roster(),
                    'game_stopped': game_stopped,
                }))
            return self.player_count()

    def _roster(self):
        host = self.find_player(self.host_session)
        return [{
            'seat': p.seat,
            'name': p.name,
            'score': p.score,
            'is_host': p is host,
        } for p in self.players]

    def _require_seated(self, session):
        player = self.find_player(session)
        if not player:
            raise IllegalAction("You are not seated at this table.")
        return player

    def _require_host(self, session):
        self._require_seated(session)
        if session != self.host_session:
            raise IllegalAction("Only the host can do that.")

    def _require_turn(self, session):
        player = self._require_seated(session)
        if self.phase != AWAITING_DISCARD or player.seat != self.current_seat:
            raise IllegalAction("It is not your turn.")
        return player

    # --- Round lifecycle ---

    def start_round(self, session):
        with self.game_lock:
            self._require_host(session)
            if self.phase != SEATING:
                raise IllegalAction("A round is already in progress.")
            if self.player_count() != SEATS:
                raise IllegalAction(f"{SEATS} players are needed to start.")
            self.dealer_seat = self.find_player(self.host_session).seat
            self._deal()

    def continue_round(self, session):
        with self.game_lock:
            self._require_host(session)
            if self.phase != ROUND_COMPLETE:
                raise IllegalAction("The current round is not finished.")
            if self.player_count() != SEATS:
                raise IllegalAction(f"{SEATS} players are needed to continue.")
            self.dealer_seat = (self.dealer_seat + 1) % SEATS
            self._deal()

    def _deal(self):
        self.phase = DEALING
        self.round_number += 1
        self.outcome = None
        self.last_discard = None
        self.sequence_choice = None
        for player in self.players:
            player.reset_round()

        self.wall = shuffle(full_deck(), self.rng)
        for offset in range(SEATS):
            player = self.seats[(self.dealer_seat + offset) % SEATS]
            player.add_tiles(self.wall[:INITIAL_HAND_SIZE])
            del self.wall[:INITIAL_HAND_SIZE]
        # Dealer opens with 14 and discards without drawing
        dealer = self.seats[self.dealer_seat]
        dealer.add_tiles([self.wall.pop(0)])

        self.current_seat = self.dealer_seat
        self.drew_this_turn = True
        self.phase = AWAITING_DISCARD
        logger.info("Round %s started at table %s, dealer seat %s", self.round_number, self.table_id, self.dealer_seat)

        seat_order = [{'seat': p.seat, 'name': p.name, 'score': p.score} for p in self.players]
        for player in self.players:
            self._emit(Event.to_session(player.session, EventType.ROUND_STARTED, {
                'round': self.round_number,
                'seat': player.seat,
                'hand': list(player.hand),
                'seat_order': seat_order,
                'dealer': self.dealer_seat,
                'current_seat': self.current_seat,
                'wall_count': len(self.wall),
            }))
        self._broadcast_table_state()
        self._prompt_discard(dealer)

    def _abort_round(self):
        self._cancel_claim_timer()
        self.arbiter.cancel()
        self.sequence_choice = None
        self.phase = SEATING
        self.wall = []
        self.current_seat = None
        self.last_discard = None
        self.outcome = None
        host = self.find_player(self.host_session)
        self.dealer_seat = host.seat if host else 0
        for player in self.players:
            player.reset_round()

    # --- Turn actions ---

    def draw_tile(self, session):
        with self.game_lock:
            player = self._require_turn(session)
            if player.hand_size != INITIAL_HAND_SIZE:
                raise IllegalAction("You already hold a full hand, discard first.")
            self._draw_for(player)

    def _draw_for(self, player):
        """Draw from the front of the wall. Returns False when the wall ran out and the round ended."""
        if not self.wall:
            self._finish_draw()
            return False
        tile = self.wall.pop(0)
        player.add_tiles([tile])
        self.drew_this_turn = True
        logger.debug("Seat %s drew %s at table %s", player.seat, tile, self.table_id)
        self._emit(Event.to_session(player.session, EventType.TILE_DRAWN, {
            'tile': tile,
            'hand': list(player.hand),
            'can_self_win': is_winning_hand(player.hand, player.melds),
            'can_concealed_quad': can_concealed_quad(player.hand),
        }))
        self._broadcast_table_state()
        return True

    def discard_tile(self, session, tile):
        with self.game_lock:
            player = self._require_turn(session)
            tile = parse_tile(tile)
            if player.hand_size != FULL_HAND_SIZE:
                raise IllegalAction("Draw a tile before discarding.")
            if tile not in player.hand:
                raise IllegalAction(f"You do not hold {tile}.")

            player.remove_tiles([tile])
            player.discards.append(tile)
            self.last_discard = (player.seat, tile)
            self.drew_this_turn = False
            logger.debug("Seat %s discarded %s at table %s", player.seat, tile, self.table_id)

            self._emit(Event.to_session(player.session, EventType.HAND_UPDATED, {'hand': list(player.hand)}))
            self._emit(Event.to_table(EventType.TILE_DISCARDED, {'seat': player.seat, 'tile': tile}))
            self._open_claims(player.seat, tile)

    def _open_claims(self, discarder_seat, tile):
        next_seat = (discarder_seat + 1) % SEATS
        eligibility = {}
        for other in self.players:
            if other.seat == discarder_seat:
                continue
            eligibility[other.seat] = claim_options(other.hand, other.melds, tile, other.seat == next_seat)

        window = self.arbiter.open(discarder_seat, tile, eligibility, self.claim_timeout)
        if not window.eligibility:
            self.arbiter.cancel()
            self._advance_turn()
            return

        self.phase = AWAITING_CLAIMS
        self.sequence_choice = None
        for seat, kinds in window.eligibility.items():
            claimant = self.seats[seat]
            payload = {
                'tile': tile,
                'from_seat': discarder_seat,
                'claims': sorted(kinds, key=claim_priority, reverse=True),
                'timeout': self.claim_timeout,
            }
            if SEQUENCE in kinds:
                payload['sequence_options'] = find_sequence_claims(claimant.hand, tile)
            self._emit(Event.to_session(claimant.session, EventType.CLAIM_AVAILABLE, payload))
        self._schedule_claim_timer()
        logger.debug("Table %s waiting on claims from seats %s", self.table_id, sorted(window.eligibility))

    def _advance_turn(self):
        discarder_seat = self.last_discard[0]
        self.last_discard = None
        self.current_seat = (discarder_seat + 1) % SEATS
        self.drew_this_turn = False
        self.phase = AWAITING_DISCARD
        player = self.seats[self.current_seat]
        self._emit(Event.to_table(EventType.TURN_ADVANCED, {
            'seat': self.current_seat,
            'must_draw': player.hand_size == INITIAL_HAND_SIZE,
        }))
        self._broadcast_table_state()
        self._prompt_discard(player)

    # --- Claims on the last discard ---

    def claim_sequence(self, session, combination=None):
        with self.game_lock:
            player = self._require_seated(session)
            self._require_claim_window()
            chosen = None
            if combination:
                chosen = canonical_order(parse_tiles(combination))
                options = find_sequence_claims(player.hand, self.last_discard[1])
                if chosen not in options:
                    raise StructuralImpossibility("That run cannot be made with the discarded tile.")
            self._submit_claim(player, SEQUENCE, combination=chosen)

    def claim_triplet(self, session):
        with self.game_lock:
            player = self._require_seated(session)
            self._require_claim_window()
            self._submit_claim(player, TRIPLET)

    def claim_quad(self, session):
        with self.game_lock:
            player = self._require_seated(session)
            self._require_claim_window()
            self._submit_claim(player, QUAD)

    def declare_win(self, session, is_self_drawn=False):
        with self.game_lock:
            if is_self_drawn:
                self._declare_self_drawn_win(session)
                return
            player = self._require_seated(session)
            self._require_claim_window()
            self._submit_claim(player, WIN)

    def pass_claim(self, session):
        with self.game_lock:
            player = self._require_seated(session)
            self._require_claim_window()
            self.arbiter.pass_(player.seat)
            logger.debug("Seat %s passed at table %s", player.seat, self.table_id)
            self._settle_if_ready()

    def _require_claim_window(self):
        if self.phase != AWAITING_CLAIMS or not self.arbiter.is_open:
            raise IllegalAction("There is no discard waiting for claims.")

    def _submit_claim(self, player, kind, combination=None):
        superseded = self.arbiter.request(player.seat, kind)
        if kind == SEQUENCE:
            self.sequence_choice = combination
        logger.info("Seat %s claimed %s at table %s", player.seat, kind, self.table_id)
        if superseded is not None:
            self._emit(Event.to_session(self.seats[superseded].session, EventType.CLAIM_SUPERSEDED, {
                'by_seat': player.seat,
                'kind': kind,
            }))
        self._settle_if_ready()

    def _settle_if_ready(self):
        if self.arbiter.ready():
            self._cancel_claim_timer()
            self._resolve(self.arbiter.settle())

    def _resolve(self, pending):
        if pending is None:
            self._advance_turn()
        elif pending.kind == WIN:
            self._honor_discard_win(pending.seat)
        else:
            self._honor_meld_claim(pending.seat, pending.kind)

    def _take_last_discard(self):
        discarder_seat, tile = self.last_discard
        self.seats[discarder_seat].discards.pop()
        self.last_discard = None
        return discarder_seat, tile

    def _honor_discard_win(self, seat):
        winner = self.seats[seat]
        discarder_seat, tile = self._take_last_discard()
        winner.add_tiles([tile])
        self._emit(Event.to_table(EventType.CLAIM_HONORED, {
            'kind': WIN,
            'seat': seat,
            'tile': tile,
            'from_seat': discarder_seat,
            'melds': [meld_payload(m) for m in winner.melds],
        }))
        self._finish_win(winner, is_self_drawn=False, from_seat=discarder_seat)

    def _honor_meld_claim(self, seat, kind):
        claimant = self.seats[seat]
        discarder_seat, tile = self._take_last_discard()

        if kind == SEQUENCE:
            combination = self.sequence_choice or find_sequence_claims(claimant.hand, tile)[0]
            used = list(combination)
            used.remove(tile)
            meld = make_meld(MELD_SEQUENCE, combination)
        elif kind == TRIPLET:
            used = [tile] * 2
            meld = make_meld(MELD_TRIPLET, [tile] * 3)
        else:
            used = [tile] * 3
            meld = make_meld(MELD_QUAD, [tile] * 4)

        claimant.remove_tiles(used)
        claimant.melds.append(meld)
        self.sequence_choice = None
        self.current_seat = seat
        self.drew_this_turn = False
        self.phase = AWAITING_DISCARD
        logger.info("Seat %s formed %s %s from seat %s at table %s", seat, kind, list(meld.tiles), discarder_seat, self.table_id)

        self._emit(Event.to_table(EventType.CLAIM_HONORED, {
            'kind': kind,
            'seat': seat,
            'tile': tile,
            'from_seat': discarder_seat,
            'melds': [meld_payload(m) for m in claimant.melds],
        }))
        self._emit(Event.to_session(claimant.session, EventType.HAND_UPDATED, {'hand': list(claimant.hand)}))
        if kind == QUAD:
            # Replacement draw; an empty wall ends the round here
            if not self._draw_for(claimant):
                return
        else:
            self._broadcast_table_state()
        self._prompt_discard(claimant)

    def _declare_self_drawn_win(self, session):
        player = self._require_turn(session)
        if player.hand_size != FULL_HAND_SIZE or not self.drew_this_turn:
            raise IllegalAction("A self-drawn win needs a tile you just drew.")
        if not is_winning_hand(player.hand, player.melds):
            raise StructuralImpossibility("Your hand is not a winning hand.")
        self._finish_win(player, is_self_drawn=True, from_seat=None)

    def claim_concealed_quad(self, session, tile=None):
        with self.game_lock:
            player = self._require_turn(session)
            if player.hand_size != FULL_HAND_SIZE:
                raise IllegalAction("Draw a tile before declaring a quad.")
            if tile is None:
                tile = can_concealed_quad(player.hand)
                if tile is None:
                    raise StructuralImpossibility("You hold no four identical tiles.")
            else:
                tile = parse_tile(tile)
                if player.hand.count(tile) != 4:
                    raise StructuralImpossibility(f"You do not hold four {tile}.")

            player.remove_tiles([tile] * 4)
            player.melds.append(make_meld(MELD_CONCEALED_QUAD, [tile] * 4))
            logger.info("Seat %s declared a concealed quad of %s at table %s", player.seat, tile, self.table_id)
            self._emit(Event.to_table(EventType.CLAIM_HONORED, {
                'kind': MELD_CONCEALED_QUAD,
                'seat': player.seat,
                'tile': tile,
                'from_seat': None,
                'melds': [meld_payload(m) for m in player.melds],
            }))
            self._emit(Event.to_session(player.session, EventType.HAND_UPDATED, {'hand': list(player.hand)}))
            if self._draw_for(player):
                self._prompt_discard(player)

    # --- Round end ---

    def _finish_win(self, winner, is_self_drawn, from_seat):
        self._cancel_claim_timer()
        self.arbiter.cancel()
        fan = score_win(winner.hand, winner.melds, is_self_drawn)
        winner.score += fan.multiplier
        self.phase = ROUND_COMPLETE
        self.outcome = {
            'type': 'win',
            'winner': winner.seat,
            'winner_name': winner.name,
            'hand': list(winner.hand),
            'melds': [meld_payload(m) for m in winner.melds],
            'fan': fan.to_payload(),
            'is_self_drawn': is_self_drawn,
            'from_seat': from_seat,
            'scores': {p.seat: p.score for p in self.players},
        }
        logger.info("Seat %s won round %s at table %s: %s x%s", winner.seat, self.round_number,
                    self.table_id, ", ".join(fan.names), fan.multiplier)
        self._emit(Event.to_table(EventType.ROUND_COMPLETE, self.outcome))
        self._broadcast_table_state()

    def _finish_draw(self):
        self._cancel_claim_timer()
        self.arbiter.cancel()
        self.phase = ROUND_COMPLETE
        self.outcome = {
            'type': 'draw',
            'scores': {p.seat: p.score for p in self.players},
        }
        logger.info("Round %s at table %s ended in a draw, the wall is empty", self.round_number, self.table_id)
        self._emit(Event.to_table(EventType.ROUND_COMPLETE, self.outcome))
        self._broadcast_table_state()

    # --- Claim timer ---

    def _schedule_claim_timer(self):
        self._cancel_claim_timer()
        self._window_id += 1
        window_id = self._window_id
        self.claim_timer = self.scheduler(self.claim_timeout, lambda: self._claim_timeout(window_id))

    def _cancel_claim_timer(self):
        if self.claim_timer:
            self.claim_timer.cancel()
            self.claim_timer = None

    def _claim_timeout(self, window_id):
        """Runs in its own green thread; a timer for a window already closed does nothing."""
        with self.game_lock:
            if window_id != self._window_id or self.phase != AWAITING_CLAIMS or not self.arbiter.is_open:
                return
            self.claim_timer = None
            logger.info("Claim window timed out at table %s", self.table_id)
            self._resolve(self.arbiter.expire())

    # --- State snapshots and delivery ---

    def public_state(self):
        with self.game_lock:
            return {
                'table_id': self.table_id,
                'phase': self.phase,
                'round': self.round_number,
                'dealer': self.dealer_seat,
                'current_seat': self.current_seat,
                'wall_count': len(self.wall),
                'last_discard': {'seat': self.last_discard[0], 'tile': self.last_discard[1]} if self.last_discard else None,
                'players': [p.public_view() for p in self.players],
            }

    def _broadcast_table_state(self):
        self._emit(Event.to_table(EventType.TABLE_STATE, self.public_state()))

    def _prompt_discard(self, player):
        self._emit(Event.to_session(player.session, EventType.YOUR_TURN, {
            'must_draw': player.hand_size == INITIAL_HAND_SIZE,
            'can_self_win': self.drew_this_turn and player.hand_size == FULL_HAND_SIZE
                            and is_winning_hand(player.hand, player.melds),
            'can_concealed_quad': can_concealed_quad(player.hand) if player.hand_size == FULL_HAND_SIZE else None,
        }))

    def _emit(self, event):
        if not self.deliver:
            return
        for session in event.recipients(self.sessions()):
            self.deliver(session, event.name, event.payload)
