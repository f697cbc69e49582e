# SPDX-License-Identifier: MIT
"""Application services for the keep-release CLI.

Services implement one release run: toolchain provisioning, platform builds,
artifact location, signing and publishing, coordinated by the orchestrator.
"""

from kr.services.checks import CheckResult, CheckStatus

__all__ = [
    # Result types
    "CheckResult",
    "CheckStatus",
]
