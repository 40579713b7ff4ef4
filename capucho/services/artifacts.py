"""Locate build outputs after packaging.

Lookups never raise: a missing directory or no match is ``None`` and the
caller decides whether that is fatal.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

__all__ = ["ArtifactKind", "find_artifact", "find_native_artifact", "find_ota_bundle"]


class ArtifactKind(Enum):
    NATIVE = "native"
    OTA = "ota"

    def __str__(self) -> str:
        return self.value


def find_native_artifact(android_dir: Path, variant: str = "release") -> Path | None:
    """First ``.apk`` under ``app/build/outputs/apk/<variant>``, skipping test APKs."""
    base = android_dir / "app" / "build" / "outputs" / "apk" / variant
    if not base.is_dir():
        return None
    try:
        candidates = sorted(base.rglob("*.apk"))
    except OSError:
        return None
    for path in candidates:
        if "androidTest" in path.relative_to(base).as_posix():
            continue
        if path.is_file():
            return path
    return None


def find_ota_bundle(directory: Path) -> Path | None:
    """Most recently modified ``.zip`` directly inside ``directory``."""
    if not directory.is_dir():
        return None
    latest: tuple[float, Path] | None = None
    try:
        for path in directory.iterdir():
            if path.suffix != ".zip" or not path.is_file():
                continue
            mtime = path.stat().st_mtime
            if latest is None or mtime > latest[0]:
                latest = (mtime, path)
    except OSError:
        return None
    return latest[1] if latest else None


def find_artifact(kind: ArtifactKind, directory: Path, *, variant: str = "release") -> Path | None:
    match kind:
        case ArtifactKind.NATIVE:
            return find_native_artifact(directory, variant)
        case ArtifactKind.OTA:
            return find_ota_bundle(directory)
