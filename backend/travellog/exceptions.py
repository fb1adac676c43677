"""
Travel Log API — Exception Hierarchy
======================================

What:  Application-specific exceptions carrying everything needed to build an
       HTTP error response: status, machine-readable code, human message and
       optional structured properties.
How:   Every error derives from TravelLogError. One global handler (registered
       in main.py) serializes them as {"code", "message", **properties}.
Who:   Raised by services, dependencies and query pipeline helpers.

Exception Hierarchy:
    TravelLogError (base)                     status  code
    ├── InvalidQueryParamError                400     invalidQueryParam
    ├── InvalidRequestBodyError               400     invalidRequestBody
    ├── AuthenticationError                   401     auth* (see AUTH_ERROR_CODES)
    ├── ForbiddenError                        403     forbidden
    ├── NotFoundError                         404     recordNotFound
    ├── ResourceNotFoundError                 404     resourceNotFound
    ├── UnsupportedMediaTypeError             415     wrongRequestFormat
    └── ValidationError                       422     invalid

Exposure:
    The message of an error is returned verbatim unless `expose` is False, in
    which case clients only see the generic "An unexpected error occurred".
"""

from typing import Any, Dict, Iterable, Optional

UNEXPECTED_MESSAGE = "An unexpected error occurred"

AUTH_ERROR_CODES = frozenset({
    "authHeaderMissing",
    "authHeaderMalformed",
    "authTokenExpired",
    "authTokenInvalid",
    "authCredentialsMissing",
    "authCredentialsUnknown",
    "authCredentialsInvalid",
})


class TravelLogError(Exception):
    """
    Base exception for all Travel Log application errors.

    Attributes:
        status:      HTTP status code of the response
        code:        Machine-readable error code (camelCase)
        message:     Human-readable description
        properties:  Extra fields merged into the response body
        expose:      Whether the message may be shown to the client
    """

    def __init__(
        self,
        status: int,
        code: str,
        message: str,
        properties: Optional[Dict[str, Any]] = None,
        expose: bool = True,
    ):
        if not isinstance(status, int):
            raise TypeError("Error status must be an integer")
        self.status = status
        self.code = code
        self.message = message
        self.properties = properties or {}
        self.expose = expose
        super().__init__(self.message)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status <= 499

    def to_response_body(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message if self.expose else UNEXPECTED_MESSAGE,
            **self.properties,
        }


class InvalidQueryParamError(TravelLogError):
    """A URL query parameter is malformed; names the offending parameter."""

    def __init__(self, query_param: str, message: str):
        super().__init__(400, "invalidQueryParam", message, {"queryParam": query_param})
        self.query_param = query_param


class InvalidRequestBodyError(TravelLogError):
    def __init__(self, message: str = "The request body must be a JSON object"):
        super().__init__(400, "invalidRequestBody", message)


class AuthenticationError(TravelLogError):
    """
    The request could not be authenticated.

    Each failure mode has its own code so that clients can tell an expired
    token (log in again) from a malformed header (fix the client).
    """

    def __init__(self, code: str, message: str, properties: Optional[Dict[str, Any]] = None):
        if code not in AUTH_ERROR_CODES:
            raise ValueError(f"Unknown authentication error code {code!r}")
        super().__init__(401, code, message, properties)


class ForbiddenError(TravelLogError):
    def __init__(
        self,
        message: str = (
            "You are not authorized to perform this action; "
            "authenticate with a user account that has more privileges"
        ),
    ):
        super().__init__(403, "forbidden", message)


class NotFoundError(TravelLogError):
    """No record of the given resource type has the requested external id."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        super().__init__(404, "recordNotFound", f"No {resource} found with ID {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class ResourceNotFoundError(TravelLogError):
    def __init__(self, message: str = "No resource found matching the request URI."):
        super().__init__(404, "resourceNotFound", message)


class UnsupportedMediaTypeError(TravelLogError):
    def __init__(self, content_type: Optional[str]):
        super().__init__(
            415,
            "wrongRequestFormat",
            "This resource only has an application/json representation, but the "
            f"content type of the request is {content_type or 'not specified'}",
        )


class ValidationError(TravelLogError):
    """
    A document failed validation.

    `errors` maps each invalid field path to a description:
        {
            "name": {
                "kind": "minlength",
                "message": "Path `name` is shorter than the minimum allowed length (3)",
                "path": "name",
                "value": "ab"
            }
        }
    """

    def __init__(self, model_name: str, errors: Dict[str, Dict[str, Any]]):
        summary = ", ".join(f"{path}: {error['message']}" for path, error in errors.items())
        super().__init__(
            422,
            "invalid",
            f"{model_name} validation failed: {summary}",
            {"errors": errors},
        )
        self.model_name = model_name
        self.errors = errors


def field_error(path: str, kind: str, message: str, value: Any = None) -> Dict[str, Any]:
    """Builds one entry of a ValidationError's `errors` map."""
    return {"kind": kind, "message": message, "path": path, "value": value}


def collect_errors(entries: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Indexes field errors by path, keeping the first error reported for a path."""
    errors: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        errors.setdefault(entry["path"], entry)
    return errors
