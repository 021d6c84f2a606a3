from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

from .errors import DescriptorError
from .triples import default_packages, is_known_triple

_PACKAGE_RE = re.compile(r"^[a-z0-9][a-z0-9+.-]+(:[a-z0-9-]+)?(=[A-Za-z0-9.+~:-]+)?$")
_DIGEST_RE = re.compile(r"@sha256:[0-9a-f]{64}$")


def package_name(entry: str) -> str:
    """Strip a version pin (``name=1.0``) and arch qualifier (``name:amd64``)."""
    return entry.split("=", 1)[0].split(":", 1)[0]


def image_tag(reference: str) -> Optional[str]:
    """Return the tag of an image reference, or None when it has none.

    A colon before the last "/" belongs to a registry port, not a tag.
    """
    ref = reference.split("@", 1)[0]
    last = ref.rsplit("/", 1)[-1]
    if ":" not in last:
        return None
    return last.rsplit(":", 1)[1]


def is_pinned_image(reference: str) -> bool:
    if _DIGEST_RE.search(reference):
        return True
    tag = image_tag(reference)
    return bool(tag) and tag != "latest"


@dataclass(frozen=True)
class PlatformDescriptor:
    base_image: str
    target_triple: str
    packages: Tuple[str, ...]
    name: str = ""

    def __post_init__(self) -> None:
        # Accept any sequence but store a tuple so the descriptor stays immutable.
        object.__setattr__(self, "packages", tuple(self.packages))
        if not self.name:
            object.__setattr__(self, "name", self.target_triple)
        self.validate()

    @property
    def package_names(self) -> Tuple[str, ...]:
        return tuple(package_name(p) for p in self.packages)

    def validate(self) -> None:
        if not self.base_image or not self.base_image.strip():
            raise DescriptorError("base_image is required")
        if any(c.isspace() for c in self.base_image):
            raise DescriptorError(f"base_image contains whitespace: {self.base_image!r}")
        if not is_pinned_image(self.base_image):
            raise DescriptorError(
                f"base_image must be pinned to a tag (not 'latest') or digest: {self.base_image}"
            )

        if not is_known_triple(self.target_triple):
            raise DescriptorError(f"Unrecognized target triple: {self.target_triple!r}")

        if not self.packages:
            raise DescriptorError("packages must be non-empty")
        seen = set()
        for p in self.packages:
            if not isinstance(p, str) or not _PACKAGE_RE.match(p):
                raise DescriptorError(f"Invalid package name: {p!r}")
            n = package_name(p)
            if n in seen:
                raise DescriptorError(f"Duplicate package: {n}")
            seen.add(n)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "base_image": self.base_image,
            "target_triple": self.target_triple,
            "packages": list(self.packages),
        }


def descriptor_from_mapping(raw: Mapping[str, Any]) -> PlatformDescriptor:
    if not isinstance(raw, Mapping):
        raise DescriptorError("platform entry must be a mapping")

    triple = str(raw.get("target_triple") or "")
    packages: Sequence[str] | None = raw.get("packages")
    if not packages and raw.get("default_packages"):
        if not is_known_triple(triple):
            raise DescriptorError(f"Unrecognized target triple: {triple!r}")
        packages = default_packages(triple)
    if packages is not None and (isinstance(packages, str) or not isinstance(packages, Sequence)):
        raise DescriptorError("packages must be a list")

    return PlatformDescriptor(
        base_image=str(raw.get("base_image") or ""),
        target_triple=triple,
        packages=tuple(packages or ()),
        name=str(raw.get("name") or ""),
    )
