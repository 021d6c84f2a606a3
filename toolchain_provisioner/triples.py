"""Recognized cross-compilation target triples.

Ubuntu ships prebuilt cross toolchains for a fixed set of triples; the package
names are derived from the triple (``g++-aarch64-linux-gnu``) and the dpkg
architecture (``libc6-dev-arm64-cross``).
"""

from __future__ import annotations

from typing import Dict, List

# triple -> dpkg architecture
KNOWN_TRIPLES: Dict[str, str] = {
    "x86_64-linux-gnu": "amd64",
    "aarch64-linux-gnu": "arm64",
    "arm-linux-gnueabihf": "armhf",
    "arm-linux-gnueabi": "armel",
    "i686-linux-gnu": "i386",
    "powerpc64le-linux-gnu": "ppc64el",
    "s390x-linux-gnu": "s390x",
    "riscv64-linux-gnu": "riscv64",
}

# Host-side libraries every toolchain set carries.
COMMON_PACKAGES = ["libssl-dev", "pkg-config"]


def is_known_triple(triple: str) -> bool:
    return triple in KNOWN_TRIPLES


def dpkg_arch(triple: str) -> str:
    try:
        return KNOWN_TRIPLES[triple]
    except KeyError:
        raise ValueError(f"Unknown target triple: {triple}") from None


def compiler_package(triple: str) -> str:
    # Debian package names cannot contain "_".
    dpkg_arch(triple)
    return "g++-" + triple.replace("_", "-")


def libc_dev_package(triple: str) -> str:
    return f"libc6-dev-{dpkg_arch(triple)}-cross"


def compiler_binary(triple: str) -> str:
    dpkg_arch(triple)
    return f"{triple}-g++"


def default_packages(triple: str) -> List[str]:
    """Standard toolchain set: C++ cross compiler, target libc headers, TLS dev lib, pkg-config."""
    return [compiler_package(triple), libc_dev_package(triple), *COMMON_PACKAGES]
