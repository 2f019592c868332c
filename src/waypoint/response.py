"""Minimal ASGI responses used by the boundary adapter."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from collections.abc import Mapping

    from waypoint._types import RawHeaders, Send


class Response:
    """A status code, headers and a fully buffered body."""

    __slots__ = ("body", "headers", "media_type", "status_code")

    default_media_type = "application/octet-stream"

    def __init__(
        self,
        content: bytes | str = b"",
        status_code: int = 200,
        headers: Mapping[str, str] | None = None,
        media_type: str | None = None,
    ) -> None:
        self.body = content.encode("utf-8") if isinstance(content, str) else content
        self.status_code = status_code
        self.headers: dict[str, str] = {k.lower(): v for k, v in (headers or {}).items()}
        self.media_type = media_type or self.default_media_type

    async def send(self, send: Send, *, include_body: bool = True) -> None:
        """Emit the response; ``include_body=False`` answers a ``HEAD``."""
        headers: RawHeaders = [
            (b"content-type", self.media_type.encode("latin-1")),
            (b"content-length", str(len(self.body)).encode("latin-1")),
        ]
        headers.extend((k.encode("latin-1"), v.encode("latin-1")) for k, v in self.headers.items())
        await send({"type": "http.response.start", "status": self.status_code, "headers": headers})
        await send({"type": "http.response.body", "body": self.body if include_body else b""})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, body={self.body[:40]!r})"


class PlainTextResponse(Response):
    default_media_type = "text/plain; charset=utf-8"


class JSONResponse(Response):
    """JSON body from plain data or a pydantic model."""

    default_media_type = "application/json"

    def __init__(
        self,
        content: Any,
        status_code: int = 200,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json")
        body = json.dumps(content, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        super().__init__(body, status_code=status_code, headers=headers)
