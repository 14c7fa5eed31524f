"""Error taxonomy and the response envelope shared by every service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Awaitable, Callable, Generic, TypeVar

from opentelemetry import trace

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class TicketDeskError(RuntimeError):
    """Base error for domain rule violations."""

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.status_code.phrase)

    @property
    def message(self) -> str:
        return str(self)


class BadRequestError(TicketDeskError):
    """Raised for malformed input."""

    status_code = HTTPStatus.BAD_REQUEST


class NotFoundError(TicketDeskError):
    """Raised when a referenced entity does not exist or is inactive."""

    status_code = HTTPStatus.NOT_FOUND


class ForbiddenError(TicketDeskError):
    """Raised when the actor is not allowed to perform the operation."""

    status_code = HTTPStatus.FORBIDDEN


class ConflictError(TicketDeskError):
    """Raised when the operation is not valid from the current state."""

    status_code = HTTPStatus.CONFLICT


@dataclass(slots=True)
class ServiceResponse(Generic[T]):
    """Uniform result of a service call: status classification, payload and message."""

    status_code: HTTPStatus
    payload: T | None
    message: str

    @property
    def ok(self) -> bool:
        return self.status_code < HTTPStatus.BAD_REQUEST


async def guard_service_call(
    service_name: str,
    operation: str,
    call: Callable[[], Awaitable[ServiceResponse[T]]],
) -> ServiceResponse[T]:
    """Run ``call`` and convert any raised error into a ``ServiceResponse``.

    Domain errors keep their status and message. Anything else is logged with
    its traceback and reported as a generic internal failure.
    """

    with tracer.start_as_current_span(f"{service_name}.{operation}") as span:
        try:
            return await call()
        except TicketDeskError as exc:
            span.set_attribute("ticketdesk.error_kind", type(exc).__name__)
            logger.warning("%s.%s rejected: %s", service_name, operation, exc)
            return ServiceResponse(exc.status_code, None, exc.message)
        except Exception as exc:
            span.record_exception(exc)
            logger.exception("Error in %s.%s", service_name, operation)
            return ServiceResponse(HTTPStatus.INTERNAL_SERVER_ERROR, None, UNEXPECTED_ERROR_MESSAGE)
