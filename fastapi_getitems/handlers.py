"""FastAPI integration for fastapi-getitems errors."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from fastapi_getitems.errors import FilterValueError, field_label


async def filter_value_error_handler(request: Request, exc: FilterValueError) -> JSONResponse:
    """
    Turn a filter value parse error into a 400 response.

    Args:
        request: FastAPI Request object
        exc: The parse error

    Returns:
        JSONResponse: ``{"detail": ..., "field": ...}`` with status 400
    """
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": str(exc),
            "field": None if exc.field is None else field_label(exc.field),
        },
    )


def install_exception_handlers(app: FastAPI) -> FastAPI:
    """
    Register the fastapi-getitems exception handlers on an app.

    Configuration errors are programming errors and are left to surface as
    500 responses.

    Example:
        app = FastAPI()
        install_exception_handlers(app)

    Args:
        app: FastAPI application

    Returns:
        FastAPI: The same app, for chaining
    """
    app.add_exception_handler(FilterValueError, filter_value_error_handler)
    return app
