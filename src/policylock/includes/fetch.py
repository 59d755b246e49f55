"""Fetch remote policy lockfiles into a content-addressed cache.

A cached lock lives at ``<cache_dir>/<sha256>.lock.json``. Content is only
moved into place after its digest matches and it decodes as a JSON object.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from urllib.request import urlopen

from policylock.errors import FetchError, ValidationError
from policylock.settings import CompileSettings, ensure_network_allowed

CACHE_SUFFIX = ".lock.json"


def fetch_lock(
    url: str,
    *,
    sha256: str,
    cache_dir: str | Path,
    settings: CompileSettings | None = None,
) -> Path:
    """Return the cached path of the lockfile at ``url``, downloading it if needed.

    An empty ``sha256`` is only accepted when ``settings.require_integrity``
    is off; the lock is then cached under the digest of what was downloaded.
    """
    settings = settings or CompileSettings()
    ensure_network_allowed(settings=settings, operation="fetch_lock")
    if not sha256 and settings.require_integrity:
        raise ValidationError(
            "Remote policy locks require a sha256 value.",
            hint="Pin the included lock by digest or disable require_integrity.",
            context={"url": url},
        )
    cache_path = Path(cache_dir)
    if sha256:
        cached = cache_path / f"{sha256}{CACHE_SUFFIX}"
        if cached.exists():
            _assert_digest(cached.read_bytes(), expected=sha256, url=url, path=cached)
            return cached

    payload = _download(url)
    digest = hashlib.sha256(payload).hexdigest()
    if sha256:
        _assert_digest(payload, expected=sha256, url=url)
    _assert_lock_document(payload, url=url)

    cache_path.mkdir(parents=True, exist_ok=True)
    artifact_path = cache_path / f"{digest}{CACHE_SUFFIX}"
    if not artifact_path.exists():
        temp_path = artifact_path.with_suffix(".tmp")
        temp_path.write_bytes(payload)
        os.replace(temp_path, artifact_path)
    return artifact_path


def _download(url: str) -> bytes:
    try:
        with urlopen(url) as response:  # noqa: S310 - digest is checked before caching
            return response.read()
    except OSError as exc:
        raise FetchError(
            "Unable to download policy lock.",
            hint="Check that the location is reachable.",
            context={"url": url, "reason": str(exc)},
        ) from exc


def _assert_digest(payload: bytes, *, expected: str, url: str, path: Path | None = None) -> None:
    actual = hashlib.sha256(payload).hexdigest()
    if actual == expected:
        return
    context = {"url": url, "expected": expected, "actual": actual}
    if path is not None:
        raise FetchError(
            "Cached policy lock hash mismatch.",
            hint="Clear the lock cache and fetch again.",
            context={**context, "path": str(path)},
        )
    raise FetchError(
        "Fetched policy lock hash mismatch.",
        hint="Update the expected digest or point at the immutable lock it was taken from.",
        context=context,
    )


def _assert_lock_document(payload: bytes, *, url: str) -> None:
    try:
        document = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FetchError(
            "Fetched policy lock is not valid JSON.",
            context={"url": url, "reason": str(exc)},
        ) from exc
    if not isinstance(document, dict):
        raise FetchError(
            "Fetched policy lock is not a JSON object.",
            context={"url": url},
        )
