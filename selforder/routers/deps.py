from fastapi import Depends, Request, Response
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from selforder.config import settings
from selforder.services.device import get_or_create_device_id
from selforder.services.order_stream import OrderStreamHub
from selforder.storage import LocalStorage
from selforder.store import BackingStore


class CookieStorage(LocalStorage):
    """Browser cookies standing in for local storage."""

    def __init__(self, request: Request, response: Response, max_age: int) -> None:
        self._cookies = dict(request.cookies)
        self._response = response
        self._max_age = max_age
        # None marks a removed key
        self._written: dict[str, str | None] = {}
        request.state.cookie_storage = self

    def get(self, key: str) -> str | None:
        return self._cookies.get(key)

    def set(self, key: str, value: str) -> None:
        self._cookies[key] = value
        self._written[key] = value
        self._write(self._response, key, value)

    def remove(self, key: str) -> None:
        self._cookies.pop(key, None)
        self._written[key] = None
        self._write(self._response, key, None)

    def apply(self, response: Response) -> None:
        """Replay the writes made during this request onto another response."""
        for key, value in self._written.items():
            self._write(response, key, value)

    def _write(self, response: Response, key: str, value: str | None) -> None:
        if value is None:
            response.delete_cookie(key)
        else:
            response.set_cookie(key, value, max_age=self._max_age, httponly=True, samesite="lax")


async def http_error_with_cookies(request: Request, exc: StarletteHTTPException) -> Response:
    # Error responses are built fresh, so cookies set on the dependency response are lost
    response = await http_exception_handler(request, exc)
    storage = getattr(request.state, "cookie_storage", None)
    if storage is not None:
        storage.apply(response)
    return response


def get_storage(request: Request, response: Response) -> LocalStorage:
    return CookieStorage(request, response, settings.cookie_max_age)


def get_store(request: Request) -> BackingStore:
    return request.app.state.store


def get_hub(request: Request) -> OrderStreamHub:
    return request.app.state.hub


def get_device_id(storage: LocalStorage = Depends(get_storage)) -> str:
    return get_or_create_device_id(storage)
