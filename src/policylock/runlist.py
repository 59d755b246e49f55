"""Run list normalization and merging across included policies."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from policylock.models import NamedRunLists, RunList, RunListItem


def normalize_run_list(items: Iterable[str | RunListItem]) -> RunList:
    """Parse items into canonical form, dropping repeats (first occurrence wins)."""
    return dedupe(RunListItem.parse(item) for item in items)


def normalize_named_run_lists(
    named: Mapping[str, Iterable[str | RunListItem]],
) -> dict[str, RunList]:
    return {name: normalize_run_list(items) for name, items in named.items()}


def dedupe(items: Iterable[RunListItem]) -> RunList:
    return tuple(dict.fromkeys(items))


def merge_run_lists(included: Sequence[RunList], top_level: RunList) -> RunList:
    """Concatenate included run lists (in inclusion order) and the top-level list.

    Duplicates are removed keeping the first occurrence and its position.
    """
    combined: list[RunListItem] = []
    for run_list in included:
        combined.extend(run_list)
    combined.extend(top_level)
    return dedupe(combined)


def merge_named_run_lists(
    included: Sequence[NamedRunLists],
    top_level: NamedRunLists,
) -> dict[str, RunList]:
    merged: dict[str, list[RunListItem]] = {}
    for named in (*included, top_level):
        for name, items in named.items():
            merged.setdefault(name, []).extend(items)
    return {name: dedupe(items) for name, items in merged.items()}


def run_list_cookbooks(
    run_list: RunList,
    named_run_lists: NamedRunLists | None = None,
) -> tuple[str, ...]:
    """Cookbook names referenced by a run list and its named run lists, in first-seen order."""
    names = [item.cookbook for item in run_list]
    for items in (named_run_lists or {}).values():
        names.extend(item.cookbook for item in items)
    return tuple(dict.fromkeys(names))
