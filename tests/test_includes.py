import hashlib
from collections.abc import Callable
from pathlib import Path

import pytest

from policylock import (
    CompileSettings,
    FetchError,
    LoadedPolicyLock,
    LocalPolicyLock,
    PolicyLock,
    PolicyLockSource,
    RemotePolicyLock,
    SettingsError,
    StructuredLogger,
    ValidationError,
    serialize_lockfile,
    to_lock_data,
    write_lockfile,
)
from policylock.includes import fetch_lock, gather_included_locks

LockFactory = Callable[..., PolicyLock]


def _publish(lock: PolicyLock, path: Path) -> tuple[str, str]:
    payload = serialize_lockfile(lock).encode("utf-8")
    path.write_bytes(payload)
    return path.as_uri(), hashlib.sha256(payload).hexdigest()


def test_fetch_requires_sha256(tmp_path: Path) -> None:
    source = tmp_path / "source.json"
    source.write_text("{}", encoding="utf-8")

    with pytest.raises(ValidationError):
        fetch_lock(source.as_uri(), sha256="", cache_dir=tmp_path / "cache")


def test_fetch_caches_by_content_hash(tmp_path: Path) -> None:
    source = tmp_path / "source.json"
    payload = b'{"name": "upstream"}'
    source.write_bytes(payload)
    digest = hashlib.sha256(payload).hexdigest()

    first = fetch_lock(source.as_uri(), sha256=digest, cache_dir=tmp_path / "cache")
    source.write_bytes(b"mutated source content")
    second = fetch_lock(source.as_uri(), sha256=digest, cache_dir=tmp_path / "cache")

    assert first == second
    assert second.read_bytes() == payload


def test_fetch_raises_on_hash_mismatch(tmp_path: Path) -> None:
    source = tmp_path / "source.json"
    source.write_bytes(b"mismatch")

    with pytest.raises(FetchError) as excinfo:
        fetch_lock(source.as_uri(), sha256="0" * 64, cache_dir=tmp_path / "cache")

    assert "hash mismatch" in str(excinfo.value)


def test_fetch_rejects_content_that_is_not_a_lock_document(tmp_path: Path) -> None:
    source = tmp_path / "source.json"
    payload = b"[1, 2, 3]"
    source.write_bytes(payload)
    cache_dir = tmp_path / "cache"

    with pytest.raises(FetchError) as excinfo:
        fetch_lock(source.as_uri(), sha256=hashlib.sha256(payload).hexdigest(), cache_dir=cache_dir)

    assert "not a JSON object" in str(excinfo.value)
    assert not cache_dir.exists() or list(cache_dir.iterdir()) == []


def test_fetch_rejects_undecodable_content(tmp_path: Path) -> None:
    source = tmp_path / "source.json"
    payload = b"\xff\xfe not json"
    source.write_bytes(payload)

    with pytest.raises(FetchError) as excinfo:
        fetch_lock(
            source.as_uri(),
            sha256=hashlib.sha256(payload).hexdigest(),
            cache_dir=tmp_path / "cache",
        )

    assert "not valid JSON" in str(excinfo.value)


def test_tampered_cache_entry_is_rejected(tmp_path: Path) -> None:
    source = tmp_path / "source.json"
    payload = b'{"name": "upstream"}'
    source.write_bytes(payload)
    digest = hashlib.sha256(payload).hexdigest()
    cached = fetch_lock(source.as_uri(), sha256=digest, cache_dir=tmp_path / "cache")
    cached.write_bytes(b'{"name": "tampered"}')

    with pytest.raises(FetchError) as excinfo:
        fetch_lock(source.as_uri(), sha256=digest, cache_dir=tmp_path / "cache")

    assert "Cached policy lock hash mismatch" in str(excinfo.value)


def test_fetch_reports_unreachable_location(tmp_path: Path) -> None:
    missing = tmp_path / "missing.json"

    with pytest.raises(FetchError) as excinfo:
        fetch_lock(missing.as_uri(), sha256="0" * 64, cache_dir=tmp_path / "cache")

    assert excinfo.value.context["url"] == missing.as_uri()


def test_offline_settings_block_remote_fetches(tmp_path: Path) -> None:
    source = tmp_path / "source.json"
    source.write_bytes(b"payload")

    with pytest.raises(SettingsError):
        fetch_lock(
            source.as_uri(),
            sha256=hashlib.sha256(b"payload").hexdigest(),
            cache_dir=tmp_path / "cache",
            settings=CompileSettings(network_mode="offline"),
        )


def test_fetch_without_integrity_when_settings_allow_it(tmp_path: Path) -> None:
    source = tmp_path / "source.json"
    payload = b'{"name": "upstream"}'
    source.write_bytes(payload)

    path = fetch_lock(
        source.as_uri(),
        sha256="",
        cache_dir=tmp_path / "cache",
        settings=CompileSettings(require_integrity=False),
    )

    assert path.name == f"{hashlib.sha256(payload).hexdigest()}.lock.json"


def test_settings_reject_non_positive_worker_count() -> None:
    with pytest.raises(ValidationError):
        CompileSettings(fetch_workers=0)


def test_sources_satisfy_capability_interface(tmp_path: Path, make_lock: LockFactory) -> None:
    lock = make_lock("upstream", ("cookbookA",))
    sources = [
        LoadedPolicyLock(lock),
        LocalPolicyLock(tmp_path / "upstream.lock.json"),
        RemotePolicyLock(url="https://x.invalid/a.json", sha256="0" * 64, cache_dir=tmp_path),
    ]

    assert all(isinstance(source, PolicyLockSource) for source in sources)


def test_local_lock_source_reads_lockfile(tmp_path: Path, make_lock: LockFactory) -> None:
    lock = make_lock("upstream", ("cookbookA",))
    source = LocalPolicyLock(write_lockfile(lock, tmp_path / "upstream.lock.json"))

    assert source.valid()
    source.ensure_cached()
    assert source.lock_data() == lock
    assert source.source_options == {"local": str(tmp_path / "upstream.lock.json")}


def test_local_lock_source_fails_when_missing(tmp_path: Path) -> None:
    source = LocalPolicyLock(tmp_path / "missing.lock.json")

    with pytest.raises(FetchError):
        source.ensure_cached()


def test_local_lock_source_wraps_invalid_lockfiles(tmp_path: Path) -> None:
    path = tmp_path / "broken.lock.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(FetchError) as excinfo:
        LocalPolicyLock(path).lock_data()

    assert "invalid" in str(excinfo.value)


def test_remote_lock_source_fetches_with_integrity(
    tmp_path: Path,
    make_lock: LockFactory,
) -> None:
    lock = make_lock("upstream", ("local_easy",))
    url, digest = _publish(lock, tmp_path / "published.json")
    source = RemotePolicyLock(url=url, sha256=digest, cache_dir=tmp_path / "cache")

    assert source.valid()
    source.ensure_cached()
    assert source.lock_data() == lock
    assert (tmp_path / "cache" / f"{digest}.lock.json").exists()
    assert source.source_options == {"remote": url}


def test_remote_lock_source_validity_rules(tmp_path: Path) -> None:
    digest = "0" * 64
    assert not RemotePolicyLock(url="ftp://x.invalid/a", sha256=digest, cache_dir=tmp_path).valid()
    assert not RemotePolicyLock(url="https://x.invalid/a", sha256="", cache_dir=tmp_path).valid()
    assert RemotePolicyLock(
        url="https://x.invalid/a",
        sha256="",
        cache_dir=tmp_path,
        settings=CompileSettings(require_integrity=False),
    ).valid()


def test_gather_returns_locks_in_inclusion_order(tmp_path: Path, make_lock: LockFactory) -> None:
    first = make_lock("first", ("cookbookA",))
    second = make_lock("second", ("cookbookB",))
    url, digest = _publish(second, tmp_path / "second.json")
    logger = StructuredLogger()

    included = gather_included_locks(
        [
            LoadedPolicyLock(first, source_options={"local": "first.lock.json"}),
            RemotePolicyLock(url=url, sha256=digest, cache_dir=tmp_path / "cache"),
        ],
        logger=logger,
        policy="including",
    )

    assert [item.lock.name for item in included] == ["first", "second"]
    assert included[1].source_options == {"remote": url}
    records = logger.records_for_phase("fetch")
    assert [record["extra"]["name"] for record in records] == ["first", "second"]


def test_gather_accepts_lock_shaped_data(make_lock: LockFactory) -> None:
    lock = make_lock("upstream", ("cookbookA",))

    class DictSource:
        source_options = {"local": "memory.json"}

        def valid(self) -> bool:
            return True

        def ensure_cached(self) -> None:
            return None

        def lock_data(self) -> dict[str, object]:
            return to_lock_data(lock)

    included = gather_included_locks([DictSource()])

    assert included[0].lock == lock


def test_gather_rejects_invalid_reference(tmp_path: Path) -> None:
    with pytest.raises(FetchError) as excinfo:
        gather_included_locks([LocalPolicyLock(tmp_path / "upstream.txt")])

    assert "reference is invalid" in str(excinfo.value)


def test_gather_reports_single_failure_as_is(tmp_path: Path, make_lock: LockFactory) -> None:
    lock = make_lock("upstream", ("cookbookA",))

    with pytest.raises(FetchError) as excinfo:
        gather_included_locks(
            [LoadedPolicyLock(lock), LocalPolicyLock(tmp_path / "missing.lock.json")]
        )

    assert excinfo.value.failures == ()
    assert "does not exist" in str(excinfo.value)


def test_gather_aggregates_multiple_failures(tmp_path: Path) -> None:
    logger = StructuredLogger()

    with pytest.raises(FetchError) as excinfo:
        gather_included_locks(
            [
                LocalPolicyLock(tmp_path / "a.lock.json"),
                LocalPolicyLock(tmp_path / "b.lock.json"),
            ],
            logger=logger,
        )

    assert len(excinfo.value.failures) == 2
    message = str(excinfo.value)
    assert "2 included policies could not be fetched" in message
    assert str(tmp_path / "a.lock.json") in message
    assert str(tmp_path / "b.lock.json") in message
    assert [record["level"] for record in logger.records] == ["error", "error"]


def test_gather_rejects_duplicate_policy_names(make_lock: LockFactory) -> None:
    lock = make_lock("upstream", ("cookbookA",))

    with pytest.raises(ValidationError) as excinfo:
        gather_included_locks(
            [
                LoadedPolicyLock(lock, source_options={"local": "one.json"}),
                LoadedPolicyLock(lock, source_options={"local": "two.json"}),
            ]
        )

    assert excinfo.value.context["name"] == "upstream"


def test_gather_with_no_sources_returns_empty() -> None:
    assert gather_included_locks([]) == ()


def test_local_lock_source_wraps_undecodable_lockfiles(tmp_path: Path) -> None:
    path = tmp_path / "binary.lock.json"
    path.write_bytes(b"\xff\xfe\x00binary")
    source = LocalPolicyLock(path)

    source.ensure_cached()
    with pytest.raises(FetchError) as excinfo:
        source.lock_data()

    assert "could not be read" in str(excinfo.value)
