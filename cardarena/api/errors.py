from fastapi import HTTPException

from cardarena.models.failure import KnownError


def to_http_exception(error: KnownError) -> HTTPException:
    """Translate a known failure into the HTTP error the client sees."""
    return HTTPException(status_code=error.status_code, detail=error.message)
