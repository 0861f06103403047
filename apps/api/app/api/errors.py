from fastapi.responses import JSONResponse

from app.services.exceptions import (
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
)


def status_for_service_error(err: ServiceError) -> int:
    if isinstance(err, BadRequestError):
        return 400
    if isinstance(err, NotFoundError):
        return 404
    if isinstance(err, PermissionDeniedError):
        return 403
    return 500


def json_error_from_service(err: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for_service_error(err),
        content={"msg": err.message, "code": err.code},
    )
