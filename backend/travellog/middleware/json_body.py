"""
Travel Log API — JSON Request Body Dependency
===============================================

Write routes only accept a JSON object:

    Content-Type other than application/json   415 wrongRequestFormat
    unparseable body, or not an object         400 invalidRequestBody
"""

from typing import Any, Dict

from starlette.requests import Request

from travellog.exceptions import InvalidRequestBodyError, UnsupportedMediaTypeError

JSON_MEDIA_TYPE = "application/json"


def media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


async def require_json(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type")
    if not content_type or media_type(content_type) != JSON_MEDIA_TYPE:
        raise UnsupportedMediaTypeError(content_type)

    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidRequestBodyError("The request body is not valid JSON") from e

    if not isinstance(body, dict):
        raise InvalidRequestBodyError()
    return body
