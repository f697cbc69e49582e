from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from kr.core.config import CONFIG_FILENAME, Config, load_config
from kr.core.environment import BuildEnvironment
from kr.core.errors import ErrorCode
from kr.core.result import Err
from kr.output.console import ConsoleProtocol, RichConsole
from kr.platform.detection import Platform, detect_platform

WORKDIR_ENV = "KR_WORKDIR"


@dataclass(frozen=True, slots=True)
class CLIContext:
    work_dir: Path
    platform: Platform
    config: Config
    environment: BuildEnvironment
    console: ConsoleProtocol

    @property
    def tauri_dir(self) -> Path:
        return self.work_dir / self.config.paths.tauri

    @property
    def release_repo(self) -> str | None:
        return self.environment.release_repo or self.config.release.repo


def build_context() -> CLIContext:
    raw = os.environ.get(WORKDIR_ENV)
    work_dir = Path(raw).expanduser() if raw else Path.cwd()
    if not work_dir.is_dir():
        typer.echo(f"error: work dir not found: {work_dir}", err=True)
        raise typer.Exit(code=int(ErrorCode.FAILURE))

    config = Config()
    config_path = work_dir / CONFIG_FILENAME
    if config_path.exists():
        config_result = load_config(config_path)
        if isinstance(config_result, Err):
            typer.echo(f"error: {config_result.error.message}", err=True)
            raise typer.Exit(code=int(ErrorCode.FAILURE))
        config = config_result.value

    return CLIContext(
        work_dir=work_dir,
        platform=detect_platform(),
        config=config,
        environment=BuildEnvironment.from_env(),
        console=RichConsole(),
    )
