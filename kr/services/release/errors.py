from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Failure talking to the release channel."""

    kind: Literal[
        "gh_missing",
        "gh_auth_required",
        "invalid_input",
        "transport",
    ]
    message: str
    hint: str | None = None
