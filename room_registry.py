import logging
import re
import threading

from constants import DEFAULT_CLAIM_TIMEOUT, TABLE_ID_LENGTH
from errors import GameError, IllegalAction
from events import Event, EventType
from mahjong_game import MahjongGame

logger = logging.getLogger(__name__)

TABLE_ID_PATTERN = re.compile(r'^[A-Z0-9]{%d}$' % TABLE_ID_LENGTH)
MAX_NAME_LENGTH = 32

COMMANDS = (
    "create_table", "join_table", "start_round", "draw_tile", "discard_tile",
    "claim_sequence", "claim_triplet", "claim_quad", "claim_concealed_quad",
    "declare_win", "pass", "continue_round", "leave_table",
)


def parse_table_id(value):
    if not isinstance(value, str) or not TABLE_ID_PATTERN.match(value):
        raise IllegalAction(f"Table id must be {TABLE_ID_LENGTH} capital letters or digits.")
    return value


def parse_name(value, default):
    if value is None or value == '':
        return default
    if not isinstance(value, str):
        raise IllegalAction("Player name must be text.")
    return value.strip()[:MAX_NAME_LENGTH] or default


class RoomRegistry:
    """
    Maps table ids to running tables and sessions to the table they sit at.
    A table is created by its host and destroyed when its last player leaves.
    """

    def __init__(self, deliver=None, claim_timeout=DEFAULT_CLAIM_TIMEOUT, scheduler=None, rng_factory=None):
        self.deliver = deliver
        self.claim_timeout = claim_timeout
        self.scheduler = scheduler
        self.rng_factory = rng_factory
        self.games = {} # {table_id: MahjongGame}
        self.session_tables = {} # {session: table_id}
        # Guards the two dicts only, table state has its own lock
        self.lock = threading.Lock()

        self._handlers = {
            'create_table': self._on_create_table,
            'join_table': self._on_join_table,
            'leave_table': self._on_leave_table,
            'start_round': lambda session, data: self._game_for(session).start_round(session),
            'continue_round': lambda session, data: self._game_for(session).continue_round(session),
            'draw_tile': lambda session, data: self._game_for(session).draw_tile(session),
            'discard_tile': lambda session, data: self._game_for(session).discard_tile(session, data.get('tile')),
            'claim_sequence': self._on_claim_sequence,
            'claim_triplet': lambda session, data: self._game_for(session).claim_triplet(session),
            'claim_quad': lambda session, data: self._game_for(session).claim_quad(session),
            'claim_concealed_quad': lambda session, data: self._game_for(session).claim_concealed_quad(session, data.get('tile')),
            'declare_win': self._on_declare_win,
            'pass': lambda session, data: self._game_for(session).pass_claim(session),
        }

    # --- Table lifecycle ---
    # The registry lock only guards the two dicts. Seating and leaving run under the
    # table's own lock, so a busy table never holds up another.

    def create_table(self, session, table_id, name=None):
        table_id = parse_table_id(table_id)
        game = MahjongGame(
            table_id,
            deliver=self.deliver,
            claim_timeout=self.claim_timeout,
            scheduler=self.scheduler,
            rng=self.rng_factory() if self.rng_factory else None,
        )
        with self.lock:
            self._check_not_seated(session)
            if table_id in self.games:
                raise IllegalAction(f"Table {table_id} already exists, join it or pick another id.")
            self.games[table_id] = game
            self.session_tables[session] = table_id
            # Joiners wait on the table lock until the host holds seat 0
            game.game_lock.acquire()
        try:
            game.open(session, parse_name(name, "Player1"))
        finally:
            game.game_lock.release()
        return game

    def join_table(self, session, table_id, name=None):
        table_id = parse_table_id(table_id)
        with self.lock:
            self._check_not_seated(session)
            game = self.games.get(table_id)
            if not game:
                raise IllegalAction(f"Table {table_id} does not exist.")
            self.session_tables[session] = table_id
        try:
            game.add_player(session, parse_name(name, f"Player{game.player_count() + 1}"))
        except GameError:
            with self.lock:
                self.session_tables.pop(session, None)
            self._close_if_empty(table_id, game)
            raise
        return game

    def leave_table(self, session):
        with self.lock:
            table_id = self.session_tables.pop(session, None)
            if table_id is None:
                raise IllegalAction("You are not at a table.")
            game = self.games.get(table_id)
        self._remove(session, table_id, game)

    def disconnect(self, session):
        """Lost sessions leave their table like an explicit leave_table."""
        with self.lock:
            table_id = self.session_tables.pop(session, None)
            game = self.games.get(table_id) if table_id is not None else None
        if table_id is not None:
            logger.info("Session %s disconnected from table %s", session, table_id)
            self._remove(session, table_id, game)

    def _remove(self, session, table_id, game):
        if not game:
            return
        game.remove_player(session)
        self._close_if_empty(table_id, game)

    def _close_if_empty(self, table_id, game):
        with self.lock:
            # A session still counted here may be half way through joining
            if self.games.get(table_id) is not game or not game.is_empty():
                return
            if table_id in self.session_tables.values():
                return
            del self.games[table_id]
        logger.info("Table %s is empty and was closed", table_id)

    def _check_not_seated(self, session):
        if session in self.session_tables:
            raise IllegalAction(f"You are already at table {self.session_tables[session]}.")

    def get(self, table_id):
        with self.lock:
            return self.games.get(table_id)

    def table_for(self, session):
        with self.lock:
            table_id = self.session_tables.get(session)
            return self.games.get(table_id) if table_id else None

    def _game_for(self, session):
        game = self.table_for(session)
        if not game:
            raise IllegalAction("You are not at a table.")
        return game

    # --- Command dispatch ---

    def dispatch(self, session, command, data=None):
        """
        Run one player command. Rejections go back to that session only as an `error` event.
        Returns True when the command was accepted.
        """
        if data is None:
            data = {}
        try:
            if not isinstance(data, dict):
                raise IllegalAction("Malformed command payload.")
            handler = self._handlers.get(command)
            if handler is None:
                raise IllegalAction(f"Unknown command {command!r}.")
            handler(session, data)
            return True
        except GameError as e:
            logger.warning("Rejected %s from %s: %s", command, session, e.message)
            self._send(Event.to_session(session, EventType.ERROR, dict(e.to_payload(), command=command)))
            return False

    def _on_create_table(self, session, data):
        self.create_table(session, data.get('table_id'), data.get('name'))

    def _on_join_table(self, session, data):
        self.join_table(session, data.get('table_id'), data.get('name'))

    def _on_leave_table(self, session, data):
        self.leave_table(session)

    def _on_claim_sequence(self, session, data):
        combination = data.get('combination')
        if combination is not None and not isinstance(combination, list):
            raise IllegalAction("A run must be given as a list of tiles.")
        self._game_for(session).claim_sequence(session, combination)

    def _on_declare_win(self, session, data):
        is_self_drawn = data.get('is_self_drawn', False)
        if not isinstance(is_self_drawn, bool):
            raise IllegalAction("is_self_drawn must be true or false.")
        self._game_for(session).declare_win(session, is_self_drawn)

    def _send(self, event):
        if self.deliver:
            for session in event.recipients([]):
                self.deliver(session, event.name, event.payload)
