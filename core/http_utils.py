from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

import requests

READ_CHUNK_BYTES = 64 * 1024


class FetchDeadlineExceeded(requests.Timeout):
    """The whole request, body included, ran past its deadline."""


def get_json_with_deadline(
    url: str,
    timeout: float,
    session: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """
    GET a JSON document with a hard wall-clock deadline.

    requests' own timeout only bounds the connect and each socket read, so a
    server trickling bytes could hold the call open forever. The body is
    streamed instead and the deadline is checked after every read; read1()
    returns whatever one socket read delivered, so a slow sender cannot keep
    a single read going past the deadline.

    Worst case the call returns one read timeout after the deadline (a server
    that goes silent right before it).

    Raises:
        requests.HTTPError: non-2xx status.
        FetchDeadlineExceeded: body not complete within `timeout` seconds.
        requests.RequestException: connection errors and socket timeouts.
        ValueError: body is not valid JSON.
    """
    deadline = time.monotonic() + timeout
    http = session or requests
    response = http.get(url, timeout=timeout, headers=headers, stream=True)
    try:
        if not 200 <= response.status_code < 300:
            raise requests.HTTPError(f"HTTP {response.status_code}", response=response)

        chunks = []
        while True:
            if time.monotonic() > deadline:
                raise FetchDeadlineExceeded(f"{url} took longer than {timeout:.1f}s")
            chunk = response.raw.read1(READ_CHUNK_BYTES, decode_content=True)
            if not chunk:
                break
            chunks.append(chunk)
    finally:
        response.close()

    return json.loads(b"".join(chunks))
