from __future__ import annotations

from ._gate import require_arch_checks_enabled
from ._utils import iter_source_files, parse_imports, rel

# Toolchains are only ever spawned through kr.platform.process so that every
# child honours timeouts and the run's CancelToken.
ALLOWLIST = {"platform/process.py"}


def test_subprocess_is_only_imported_by_the_process_runner() -> None:
    require_arch_checks_enabled()

    offenders: list[str] = []
    for path in iter_source_files():
        if rel(path) in ALLOWLIST:
            continue
        for item in parse_imports(path):
            if item.module in ("subprocess", "os.system"):
                offenders.append(f"{rel(path)}:{item.line}: imports {item.module}")

    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)
