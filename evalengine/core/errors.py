# evalengine/core/errors.py
from typing import Any, Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse


class EvaluationError(Exception):
    """Base class for domain errors raised by the evaluation engine.

    Every subclass maps to one HTTP status so routers never have to
    translate them by hand; see ``register_exception_handlers``.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    code = "evaluation_error"

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> dict:
        body = {"detail": self.detail, "code": self.code}
        if self.context:
            body["context"] = self.context
        return body


class ValidationError(EvaluationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class AuthorizationError(EvaluationError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "authorization_error"


class NotFoundError(EvaluationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(EvaluationError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class ActiveEvaluationExistsError(ConflictError):
    code = "active_evaluation_exists"

    def __init__(self, employee_id: int, evaluation_id: Optional[int] = None):
        super().__init__(
            "Employee already has an active evaluation",
            employee_id=employee_id,
            evaluation_id=evaluation_id,
        )


class InvalidStateError(ConflictError):
    code = "invalid_state"


async def evaluation_error_handler(request: Request, exc: EvaluationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app) -> None:
    app.add_exception_handler(EvaluationError, evaluation_error_handler)
