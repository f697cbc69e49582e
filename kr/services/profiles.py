"""Static per-platform release profiles.

A profile bundles everything that differs between the desktop and mobile
pipelines: toolchain requirements, packaging command, nominal output root,
output search strategy, signing support and phase budgets. Pipelines never
branch on the target themselves; they read its profile.
"""

from __future__ import annotations

from dataclasses import dataclass

from kr.core.config import DESKTOP_BUNDLE_EXTENSIONS, Config, PhaseTimeouts
from kr.core.targets import PlatformTarget
from kr.platform.detection import Platform
from kr.services.locator import OutputSearch

__all__ = [
    "BinaryRequirement",
    "Requirement",
    "RustTargetRequirement",
    "SdkRootRequirement",
    "TargetProfile",
    "profile_for",
]

ANDROID_RUST_TARGETS = (
    "aarch64-linux-android",
    "armv7-linux-androideabi",
    "i686-linux-android",
    "x86_64-linux-android",
)


@dataclass(frozen=True, slots=True)
class BinaryRequirement:
    """An executable on PATH, verified by running `probe`."""

    id: str
    probe: tuple[str, ...]
    install: tuple[str, ...] | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class RustTargetRequirement:
    triple: str

    @property
    def id(self) -> str:
        return f"rust-target:{self.triple}"

    @property
    def install(self) -> tuple[str, ...]:
        return ("rustup", "target", "add", self.triple)


@dataclass(frozen=True, slots=True)
class SdkRootRequirement:
    """An SDK directory located through an environment variable.

    SDK roots are never installed by the provisioner; `marker` is a path
    inside the root that must exist for the SDK to be usable.
    """

    id: str
    env_var: str
    attr: str
    marker: str
    hint: str


Requirement = BinaryRequirement | RustTargetRequirement | SdkRootRequirement


@dataclass(frozen=True, slots=True)
class TargetProfile:
    target: PlatformTarget
    requirements: tuple[Requirement, ...]
    # Relative to the tauri directory.
    output_root: str
    native_command: tuple[str, ...]
    search: OutputSearch
    signing_supported: bool
    timeouts: PhaseTimeouts


_RUST_TOOLCHAIN: tuple[Requirement, ...] = (
    BinaryRequirement(
        id="rustc",
        probe=("rustc", "--version"),
        hint="Install Rust: https://rustup.rs/",
    ),
    BinaryRequirement(
        id="cargo",
        probe=("cargo", "--version"),
        hint="Install Rust: https://rustup.rs/",
    ),
    BinaryRequirement(
        id="rustup",
        probe=("rustup", "--version"),
        hint="Install Rust: https://rustup.rs/",
    ),
    RustTargetRequirement("wasm32-unknown-unknown"),
    BinaryRequirement(
        id="trunk",
        probe=("trunk", "--version"),
        install=("cargo", "install", "trunk", "--locked"),
    ),
    BinaryRequirement(
        id="tauri_cli",
        probe=("cargo", "tauri", "--version"),
        install=("cargo", "install", "tauri-cli", "--version", "^2", "--locked"),
    ),
)

_ANDROID_TOOLCHAIN: tuple[Requirement, ...] = (
    SdkRootRequirement(
        id="jdk",
        env_var="JAVA_HOME",
        attr="java_home",
        marker="bin",
        hint="Install JDK 17 and export JAVA_HOME",
    ),
    SdkRootRequirement(
        id="android_sdk",
        env_var="ANDROID_HOME",
        attr="android_home",
        marker="platform-tools",
        hint="Install the Android SDK (platform-tools) and export ANDROID_HOME",
    ),
    SdkRootRequirement(
        id="android_ndk",
        env_var="NDK_HOME",
        attr="ndk_home",
        marker="source.properties",
        hint="Install the Android NDK with sdkmanager and export NDK_HOME",
    ),
    *(RustTargetRequirement(triple) for triple in ANDROID_RUST_TARGETS),
)


def desktop_bundle(config: Config, platform: Platform) -> str:
    return config.desktop.bundle or platform.desktop_bundle


def profile_for(target: PlatformTarget, *, config: Config, platform: Platform) -> TargetProfile:
    match target:
        case PlatformTarget.DESKTOP:
            bundle = desktop_bundle(config, platform)
            ext = DESKTOP_BUNDLE_EXTENSIONS[bundle]
            return TargetProfile(
                target=target,
                requirements=_RUST_TOOLCHAIN,
                output_root="target",
                native_command=("cargo", "tauri", "build", "--bundles", bundle),
                search=OutputSearch(
                    patterns=(
                        f"release/bundle/{bundle}/*{ext}",
                        # --target builds nest under the triple
                        f"**/release/bundle/{bundle}/*{ext}",
                    ),
                    extension=ext,
                ),
                signing_supported=True,
                timeouts=config.timeouts.desktop,
            )
        case PlatformTarget.MOBILE:
            return TargetProfile(
                target=target,
                requirements=_RUST_TOOLCHAIN + _ANDROID_TOOLCHAIN,
                output_root="gen/android/app/build/outputs",
                native_command=("cargo", "tauri", "android", "build", "--apk"),
                search=OutputSearch(
                    patterns=(
                        "apk/universal/release/*.apk",
                        # per-ABI splits and older Gradle layouts
                        "apk/*/release/*.apk",
                        "apk/release/*.apk",
                    ),
                    extension=".apk",
                ),
                signing_supported=False,
                timeouts=config.timeouts.mobile,
            )
        case _:
            raise AssertionError(f"unexpected target: {target}")
