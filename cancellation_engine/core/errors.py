"""
Exception hierarchy for the decisioning engine.

Each error carries the HTTP status the API layer should answer with.
Degraded scoring and dispatch failures are not represented here: they are
recovered inside the engine and never reach the caller.
"""


class CancellationEngineError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CancellationEngineError):
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(CancellationEngineError):
    status_code = 422


class InvalidTransitionError(CancellationEngineError):
    status_code = 409


class ConcurrencyConflictError(CancellationEngineError):
    status_code = 409
