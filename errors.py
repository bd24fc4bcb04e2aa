class GameError(Exception):
    """Base class for rejected commands. Never fatal to a table."""
    code = "game_error"

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_payload(self):
        return {'code': self.code, 'message': self.message}


class IllegalAction(GameError):
    """Wrong turn, wrong phase, malformed tile or command, not enough players."""
    code = "illegal_action"


class ClaimConflict(GameError):
    """Another seat holds a claim of equal or higher priority."""
    code = "claim_conflict"


class StructuralImpossibility(GameError):
    """The requested claim or win does not exist in the player's tiles."""
    code = "structural_impossibility"
