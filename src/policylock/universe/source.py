"""External cookbook universe sources."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from policylock.errors import ValidationError

DEFAULT_UNIVERSE_URI = "https://supermarket.chef.io"

UniverseGraph = Mapping[str, Mapping[str, Sequence[tuple[str, str]]]]


@runtime_checkable
class UniverseSource(Protocol):
    """Runtime protocol for anything that can enumerate available cookbooks."""

    @property
    def uri(self) -> str:
        """Return the base location of the source, used for lock origins."""

    def universe_graph(self, name: str | None = None) -> UniverseGraph:
        """Return cookbook name -> version -> ordered (dependency, constraint) pairs."""

    def source_options_for(self, name: str, version: str) -> dict[str, str]:
        """Return the options needed to fetch this exact cookbook version again."""


@dataclass(frozen=True, slots=True)
class StaticUniverseSource:
    """In-memory universe, optionally carrying per-version download URLs."""

    graph: UniverseGraph
    uri: str = DEFAULT_UNIVERSE_URI
    download_urls: Mapping[tuple[str, str], str] = field(default_factory=dict)

    def universe_graph(self, name: str | None = None) -> UniverseGraph:
        if name is None:
            return self.graph
        if name not in self.graph:
            return {}
        return {name: self.graph[name]}

    def source_options_for(self, name: str, version: str) -> dict[str, str]:
        url = self.download_urls.get((name, version))
        if url is None:
            url = f"{self.uri.rstrip('/')}/api/v1/cookbooks/{name}/versions/{version}/download"
        return {"artifactserver": url, "version": version}

    @classmethod
    def from_universe_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        uri: str = DEFAULT_UNIVERSE_URI,
    ) -> StaticUniverseSource:
        """Build a source from a community ``/universe`` endpoint document."""
        graph: dict[str, dict[str, tuple[tuple[str, str], ...]]] = {}
        download_urls: dict[tuple[str, str], str] = {}
        for name, versions in payload.items():
            if not isinstance(name, str) or not isinstance(versions, Mapping):
                raise ValidationError(
                    "Invalid universe entry.",
                    context={"cookbook": str(name)},
                )
            graph[name] = {}
            for version, details in versions.items():
                if not isinstance(details, Mapping):
                    raise ValidationError(
                        "Invalid universe version entry.",
                        context={"cookbook": name, "version": str(version)},
                    )
                dependencies = details.get("dependencies", {})
                if not isinstance(dependencies, Mapping):
                    raise ValidationError(
                        "Invalid universe dependency map.",
                        context={"cookbook": name, "version": str(version)},
                    )
                graph[name][version] = tuple(
                    (str(dep), str(constraint)) for dep, constraint in dependencies.items()
                )
                download_url = details.get("download_url")
                if isinstance(download_url, str) and download_url:
                    download_urls[(name, version)] = download_url
        return cls(graph=graph, uri=uri, download_urls=download_urls)

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        *,
        uri: str = DEFAULT_UNIVERSE_URI,
    ) -> StaticUniverseSource:
        universe_path = Path(path)
        try:
            payload = json.loads(universe_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ValidationError(
                "Universe file does not exist.",
                context={"path": str(universe_path)},
            ) from exc
        except json.JSONDecodeError as exc:
            raise ValidationError(
                "Invalid universe JSON.",
                hint=str(exc),
                context={"path": str(universe_path)},
            ) from exc
        if not isinstance(payload, dict):
            raise ValidationError(
                "Invalid universe payload type.",
                context={"path": str(universe_path)},
            )
        return cls.from_universe_payload(payload, uri=uri)
