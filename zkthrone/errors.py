"""Error taxonomy shared by the room services and the HTTP layer."""


class CoordinatorError(Exception):
    """Base class for failures that terminate a single request."""

    code = 'CoordinatorError'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class RoomNotFound(CoordinatorError):
    code = 'NotFound'

    def __init__(self, room_id):
        super().__init__(f'Room not found: {room_id}')
        self.room_id = room_id


class Forbidden(CoordinatorError):
    code = 'Forbidden'


class InvalidState(CoordinatorError):
    code = 'InvalidState'


class ValidationError(CoordinatorError):
    code = 'Validation'


class NotInRoom(ValidationError):
    def __init__(self, wallet):
        super().__init__('Player not in room')
        self.wallet = wallet


class RoomFull(CoordinatorError):
    code = 'RoomFull'


class InsufficientPlayers(CoordinatorError):
    code = 'InsufficientPlayers'


class IncorrectSolution(CoordinatorError):
    code = 'IncorrectSolution'


class ProofGenerationFailure(CoordinatorError):
    code = 'ProofGenerationFailure'


class ProofVerificationFailure(CoordinatorError):
    code = 'ProofVerificationFailure'
