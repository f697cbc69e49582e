from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RemoteAsset:
    name: str
    size: int


@dataclass(frozen=True, slots=True)
class RemoteRelease:
    """A release as the channel reports it."""

    tag: str
    draft: bool
    body: str
    url: str | None
    assets: tuple[RemoteAsset, ...] = ()

    @property
    def asset_names(self) -> frozenset[str]:
        return frozenset(a.name for a in self.assets)
