"""
utils/cache.py — Conditional GET (ETag / If-None-Match) for public listings.

Public note and deck listings are fetched by every visitor of the explore
pages; a matching ETag short-circuits to an empty 304.
"""

import hashlib
import json
from typing import Optional, Union

from fastapi import Request, Response


def make_etag(data: Union[dict, list]) -> str:
    """Quoted MD5 of the canonical JSON form of ``data``."""
    digest = hashlib.md5(
        json.dumps(data, sort_keys=True, default=str).encode()
    ).hexdigest()
    return f'"{digest}"'


def conditional_response(
    request: Request,
    response: Response,
    data: dict,
    cache_control: Optional[str] = None,
):
    """Return ``data`` with an ETag header, or a bare 304 if the client has it."""
    etag = make_etag(data)
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers={"ETag": etag})
    response.headers["ETag"] = etag
    if cache_control:
        response.headers["Cache-Control"] = cache_control
    return data
