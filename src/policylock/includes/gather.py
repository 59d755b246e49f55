"""Concurrent retrieval of included policy locks behind a single barrier."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from policylock.errors import FetchError, LockfileError, ValidationError
from policylock.includes.sources import PolicyLockSource
from policylock.lockfile.io import policy_lock_from_data
from policylock.models import IncludedLock, PolicyLock
from policylock.observability import StructuredLogger
from policylock.settings import CompileSettings


def gather_included_locks(
    sources: Sequence[PolicyLockSource],
    *,
    settings: CompileSettings | None = None,
    logger: StructuredLogger | None = None,
    policy: str | None = None,
) -> tuple[IncludedLock, ...]:
    """Fetch every included lock concurrently and return them in inclusion order.

    All fetches run to completion before anything is returned or raised. A
    single failure is re-raised as is; several failures are reported together
    as one aggregate ``FetchError``.
    """
    if not sources:
        return ()
    settings = settings or CompileSettings()
    logger = logger or StructuredLogger()

    fetched: dict[int, IncludedLock] = {}
    failures: list[FetchError] = []
    workers = min(settings.fetch_workers, len(sources))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="policylock-fetch") as pool:
        futures = [pool.submit(_fetch_one, source) for source in sources]
        for index, future in enumerate(futures):
            source_options = dict(sources[index].source_options)
            try:
                fetched[index] = future.result()
            except FetchError as exc:
                failures.append(exc)
                logger.log(
                    operation="fetch_included_policy",
                    policy=policy,
                    phase="fetch",
                    message="Failed to fetch included policy.",
                    level="error",
                    extra={"source_options": source_options, "error": exc.code},
                )
                continue
            logger.log(
                operation="fetch_included_policy",
                policy=policy,
                phase="fetch",
                message="Fetched included policy.",
                extra={
                    "source_options": source_options,
                    "name": fetched[index].lock.name,
                    "revision_id": fetched[index].lock.revision_id,
                },
            )

    if len(failures) == 1:
        raise failures[0]
    if failures:
        raise FetchError(
            f"{len(failures)} included policies could not be fetched.",
            hint="Fix every failing included policy reference and compile again.",
            failures=failures,
        )

    included = tuple(fetched[index] for index in range(len(sources)))
    _ensure_unique_names(included)
    return included


def _fetch_one(source: PolicyLockSource) -> IncludedLock:
    source_options = dict(source.source_options)
    if not source.valid():
        raise FetchError(
            "Included policy reference is invalid.",
            hint="Provide a complete location for the included policy.",
            context=source_options,
        )
    source.ensure_cached()
    data = source.lock_data()
    if isinstance(data, PolicyLock):
        lock = data
    else:
        try:
            lock = policy_lock_from_data(data)
        except LockfileError as exc:
            raise FetchError(
                "Included policy lock data is invalid.",
                hint=exc.hint,
                context={**source_options, "reason": exc.args[0]},
            ) from exc
    return IncludedLock(lock=lock, source_options=source_options)


def _ensure_unique_names(included: Sequence[IncludedLock]) -> None:
    seen: dict[str, IncludedLock] = {}
    for item in included:
        previous = seen.get(item.lock.name)
        if previous is not None:
            raise ValidationError(
                "Two included policies share the same name.",
                hint="Each included policy must have a distinct name.",
                context={
                    "name": item.lock.name,
                    "first": previous.origin.location,
                    "second": item.origin.location,
                },
            )
        seen[item.lock.name] = item
