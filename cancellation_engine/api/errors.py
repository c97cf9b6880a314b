from fastapi import HTTPException, status

from cancellation_engine.core.errors import CancellationEngineError
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)


def http_error(exc: CancellationEngineError) -> HTTPException:
    """Translate an engine error into the matching HTTP response."""
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def internal_error(action: str, exc: Exception) -> HTTPException:
    logger.error(f"{action} failed: {str(exc)}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"{action} failed"
    )
