"""Async helper for calling the background server."""
import logging
from typing import Any, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


async def api_call(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    data: Optional[BaseModel] = None,
    response_model: Optional[Type[T]] = None,
    **kwargs: Any,
) -> Union[T, Any]:
    """Make a request and decode the response.

    Args:
        client: Client bound to the background server
        method: HTTP method
        path: Path relative to the server root
        data: Request body model
        response_model: Model to validate the response with
        **kwargs: Passed through to ``client.request``

    Returns:
        The validated model, the decoded JSON, or ``{}`` for empty responses

    Raises:
        TransportError: on network failure, error status or unexpected payload
    """
    url = "/" + path.lstrip("/")
    if data is not None:
        kwargs["json"] = data.model_dump()

    logger.debug(f"{method} {url}")
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise TransportError(0, str(e)) from e

    if response.status_code >= 400:
        try:
            detail = response.json()["detail"]
        except (ValueError, KeyError, TypeError):
            detail = response.text or f"HTTP {response.status_code}"
        raise TransportError(response.status_code, str(detail))

    if not response.content:
        return {}

    try:
        if response_model is not None:
            return response_model.model_validate_json(response.content)
        return response.json()
    except (ValueError, PydanticValidationError) as e:
        raise TransportError(response.status_code, f"Invalid response: {e}") from e
