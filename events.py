from collections import namedtuple
from enum import Enum


class EventType(Enum):
    """Every event the table can produce. The value is the Socket.IO event name."""
    TABLE_CREATED = 'table_created'
    PLAYER_JOINED = 'player_joined'
    PLAYER_LEFT = 'player_left'
    ROUND_STARTED = 'round_started'
    YOUR_TURN = 'your_turn'
    TILE_DRAWN = 'tile_drawn'
    TILE_DISCARDED = 'tile_discarded'
    CLAIM_AVAILABLE = 'claim_available'
    CLAIM_HONORED = 'claim_honored'
    CLAIM_SUPERSEDED = 'claim_superseded'
    TURN_ADVANCED = 'turn_advanced'
    HAND_UPDATED = 'hand_updated'
    TABLE_STATE = 'table_state'
    ROUND_COMPLETE = 'round_complete'
    ERROR = 'error'


class Delivery(Enum):
    SESSION = 'session' # one player
    TABLE = 'table' # every seated player


class Event(namedtuple('Event', ['type', 'payload', 'delivery', 'session'])):
    __slots__ = ()

    @classmethod
    def to_session(cls, session, event_type, payload=None):
        return cls(event_type, payload or {}, Delivery.SESSION, session)

    @classmethod
    def to_table(cls, event_type, payload=None):
        return cls(event_type, payload or {}, Delivery.TABLE, None)

    @property
    def name(self):
        return self.type.value

    def recipients(self, table_sessions):
        if self.delivery is Delivery.SESSION:
            return [self.session]
        return list(table_sessions)
