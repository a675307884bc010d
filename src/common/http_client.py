"""HTTP access for the package indices and archive downloads.

Index pages and documents go through ``robust_get`` (retries, timeout and a
short-lived in-memory response cache); archives are streamed to disk by
``download_file``. Nothing here exits the process: failures come back as a
zero status or as ``DownloadError``.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, redact, safe_url, Timer
from errors import DownloadError

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, str], str]

# url + headers -> (response, fetched at)
_http_cache: Dict[str, Tuple[Response, float]] = {}


def _cache_key(url: str, headers: Optional[Dict[str, str]]) -> str:
    return f"GET:{url}:{sorted(headers.items()) if headers else ''}"


def _cached(key: str) -> Optional[Response]:
    entry = _http_cache.get(key)
    if entry is None:
        return None
    response, fetched_at = entry
    if time.time() - fetched_at >= Constants.HTTP_CACHE_TTL_SEC:
        del _http_cache[key]
        return None
    return response


def _trace(message: str, **fields: Any) -> None:
    if is_debug_enabled(logger):
        logger.debug(message, extra=extra_context(component="http_client", action="GET", **fields))


def clear_cache() -> None:
    """Drop every cached response."""
    _http_cache.clear()


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    use_cache: bool = True,
    **kwargs: Any
) -> Response:
    """GET ``url`` with retries on timeouts, connection errors and 5xx answers.

    Args:
        url: Target URL.
        headers: Optional request headers (part of the cache key).
        use_cache: Serve a fresh cached response instead of fetching.
        **kwargs: Passed on to ``requests.get``.

    Returns:
        Tuple of (status_code, headers_dict, text). Status 0 means every
        attempt failed; ``text`` then describes the last failure.
    """
    key = _cache_key(url, headers)
    target = safe_url(url)
    if use_cache:
        cached = _cached(key)
        if cached is not None:
            _trace("HTTP cache hit", event="cache_hit", target=target)
            return cached

    failure = "no attempt made"
    for attempt in range(1, Constants.HTTP_RETRY_MAX + 1):
        _trace("HTTP request", event="http_request", target=target, attempt=attempt)
        with Timer() as t:
            try:
                res = requests.get(url, timeout=Constants.REQUEST_TIMEOUT, headers=headers, **kwargs)
            except requests.Timeout:
                failure = "timeout"
                _trace("HTTP timeout", event="http_exception", outcome="timeout",
                       target=target, attempt=attempt)
                continue
            except requests.RequestException as exc:
                failure = redact(str(exc))
                _trace("HTTP request exception", event="http_exception", outcome="request_exception",
                       target=target, attempt=attempt)
                continue

        if res.status_code >= 500:
            failure = f"HTTP {res.status_code}"
            continue
        response: Response = (res.status_code, dict(res.headers), res.text)
        _http_cache[key] = (response, time.time())
        _trace("HTTP response", event="http_response", outcome="success",
               status_code=res.status_code, duration_ms=t.duration_ms(), target=target)
        return response

    logger.debug("GET %s failed: %s", target, failure)
    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {failure}"


def download_file(url: str, dest_dir: str) -> str:
    """Stream ``url`` into ``dest_dir`` and return the local file path.

    Raises:
        DownloadError: on network failure or a non-200 response.
    """
    target = safe_url(url)
    filename = os.path.basename(url.split("?", 1)[0]) or "download"
    path = os.path.join(dest_dir, filename)
    with Timer() as t:
        try:
            with requests.get(url, timeout=Constants.REQUEST_TIMEOUT, stream=True) as res:
                if res.status_code != 200:
                    raise DownloadError(f"download of {target} failed with HTTP {res.status_code}")
                with open(path, "wb") as fh:
                    for chunk in res.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
        except requests.Timeout as exc:
            raise DownloadError(
                f"download of {target} timed out after {Constants.REQUEST_TIMEOUT} seconds"
            ) from exc
        except requests.RequestException as exc:  # includes ConnectionError
            raise DownloadError(f"download of {target} failed: {redact(str(exc))}") from exc
    _trace("Downloaded archive", event="download", outcome="success",
           duration_ms=t.duration_ms(), target=target)
    return path
