"""Artifact signing.

Desktop packages get a detached minisign signature through
`cargo tauri signer sign`, the format the Tauri updater verifies. The private
key and its password reach the signer only through the child process
environment of that single call: they are not passed on the command line,
not echoed, and not written to disk.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from kr.core.environment import (
    SIGNING_KEY_ENV,
    SIGNING_PASSWORD_ENV,
    SIGNING_PUBLIC_KEY_ENV,
    BuildEnvironment,
)
from kr.core.result import Err, Ok, Result
from kr.core.secrets import Secret
from kr.output.console import ConsoleProtocol, Style
from kr.platform.process import CancelToken, CommandRunner
from kr.services.errors import Cancelled, PhaseTimeout, SignError
from kr.services.model import Artifact

__all__ = ["SIGN_COMMAND", "Signer", "SigningMaterial", "load_signing_material"]

SIGN_COMMAND = ("cargo", "tauri", "signer", "sign")

SignFailure = SignError | PhaseTimeout | Cancelled


@dataclass(frozen=True, slots=True)
class SigningMaterial:
    """Updater signing key pair, valid for one run."""

    private_key: Secret = field(repr=False)
    password: Secret = field(repr=False)
    public_key: str = ""


def load_signing_material(environ: Mapping[str, str]) -> SigningMaterial | None:
    """Read signing material from the environment; None when no key is set."""
    key = environ.get(SIGNING_KEY_ENV, "")
    if not key.strip():
        return None
    return SigningMaterial(
        private_key=Secret(key.strip()),
        # Keys generated without a password are valid.
        password=Secret(environ.get(SIGNING_PASSWORD_ENV, "")),
        public_key=environ.get(SIGNING_PUBLIC_KEY_ENV, "").strip(),
    )


def signature_path_for(path: Path) -> Path:
    return path.with_name(path.name + ".sig")


def _scrub(text: str, material: SigningMaterial) -> str:
    for secret in (material.private_key, material.password):
        if not secret.is_empty():
            text = text.replace(secret.reveal(), "********")
    return text


class Signer:
    def __init__(
        self,
        *,
        work_dir: Path,
        environment: BuildEnvironment,
        runner: CommandRunner,
        console: ConsoleProtocol,
    ) -> None:
        self._work_dir = work_dir
        self._env = environment
        self._runner = runner
        self._console = console

    def sign(
        self,
        artifact: Artifact,
        material: SigningMaterial,
        *,
        timeout: float,
        cancel: CancelToken | None = None,
    ) -> Result[Artifact, SignFailure]:
        """Sign `artifact`, returning a copy marked signed.

        A wrong password or corrupt key makes the signer exit non-zero, which
        is a `SignError`; so is a zero exit that left no signature behind.
        """
        target = artifact.target
        sig_path = signature_path_for(artifact.path)
        # A leftover signature from an earlier run must not pass as ours.
        try:
            sig_path.unlink(missing_ok=True)
        except OSError as e:
            return Err(SignError(target=target, message=f"cannot replace {sig_path.name}: {e}"))

        cmd = [*SIGN_COMMAND, str(artifact.path)]
        self._console.print(f"[{target}] sign: {' '.join(cmd)}", Style.DIM)

        env = self._env.child_env()
        env[SIGNING_KEY_ENV] = material.private_key.reveal()
        env[SIGNING_PASSWORD_ENV] = material.password.reveal()
        try:
            result = self._runner.run(
                cmd, self._work_dir, env, timeout=timeout, cancel=cancel, merge_output=True
            )
        finally:
            env.clear()

        if isinstance(result, Err):
            e = result.error
            if e.cancelled:
                return Err(Cancelled(phase="sign"))
            if e.timed_out:
                return Err(PhaseTimeout(target=target, phase="sign", seconds=timeout))
            return Err(
                SignError(
                    target=target,
                    message=f"signing failed (exit {e.returncode}); check the key and its password",
                    log_excerpt=_scrub(e.tail(10), material),
                )
            )

        if not sig_path.is_file():
            return Err(
                SignError(target=target, message=f"signer wrote no signature: {sig_path}")
            )

        return Ok(
            replace(
                artifact,
                signed=True,
                signature_path=sig_path,
                public_key=material.public_key or None,
            )
        )
