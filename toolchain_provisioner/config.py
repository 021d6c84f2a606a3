from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from .descriptor import PlatformDescriptor, descriptor_from_mapping
from .errors import DescriptorError

# A failed refresh is retried at most once.
MAX_INDEX_REFRESH_RETRIES = 1


@dataclass(frozen=True)
class ProvisionerConfig:
    non_interactive: bool = True
    install_recommends: bool = False
    install_suggests: bool = False
    index_refresh_retries: int = 1
    timeout_s: Optional[float] = None
    docker_binary: str = "docker"
    keep_environment: bool = False
    verify_toolchain: bool = True
    dry_run: bool = False

    def __post_init__(self) -> None:
        for name in ("non_interactive", "install_recommends", "install_suggests", "keep_environment",
                     "verify_toolchain", "dry_run"):
            if not isinstance(getattr(self, name), bool):
                raise DescriptorError(f"{name} must be true or false, got {getattr(self, name)!r}")

        retries = self.index_refresh_retries
        # bool is an int subclass.
        if isinstance(retries, bool) or not isinstance(retries, int):
            raise DescriptorError(f"index_refresh_retries must be an integer, got {retries!r}")
        if not 0 <= retries <= MAX_INDEX_REFRESH_RETRIES:
            raise DescriptorError(
                f"index_refresh_retries must be between 0 and {MAX_INDEX_REFRESH_RETRIES}, got {retries}"
            )

        t = self.timeout_s
        if t is not None:
            if isinstance(t, bool) or not isinstance(t, (int, float)):
                raise DescriptorError(f"timeout_s must be a number of seconds, got {t!r}")
            if t <= 0:
                raise DescriptorError("timeout_s must be positive")

        if not isinstance(self.docker_binary, str) or not self.docker_binary:
            raise DescriptorError(f"docker_binary must be a non-empty string, got {self.docker_binary!r}")

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "ProvisionerConfig":
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(raw) - known)
        if unknown:
            raise DescriptorError(f"Unknown provisioner settings: {', '.join(unknown)}")
        return cls(**raw)

    def with_overrides(self, **overrides: Any) -> "ProvisionerConfig":
        """Apply CLI overrides; None means "not given"."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


@dataclass(frozen=True)
class ProvisionFile:
    raw: Dict[str, Any]

    @property
    def platforms(self) -> List[PlatformDescriptor]:
        entries = self.raw.get("platforms") or []
        if not isinstance(entries, list):
            raise DescriptorError("platforms must be a list")
        return [descriptor_from_mapping(e) for e in entries]

    @property
    def provisioner(self) -> ProvisionerConfig:
        raw = self.raw.get("provisioner") or {}
        if not isinstance(raw, dict):
            raise DescriptorError("provisioner must be a mapping")
        return ProvisionerConfig.from_mapping(raw)

    def platform(self, name: Optional[str]) -> List[PlatformDescriptor]:
        platforms = self.platforms
        if name is None:
            return platforms
        chosen = [p for p in platforms if p.name == name]
        if not chosen:
            raise DescriptorError(f"No platform named {name!r}")
        return chosen


def load_config(path: str) -> ProvisionFile:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("provision config must be YAML")

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read provision config") from e

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"provision config is not valid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError("provision config must contain a mapping/object")

    return ProvisionFile(raw=raw)
