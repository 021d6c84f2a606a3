from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Sequence

NONINTERACTIVE_ENV: Dict[str, str] = {
    "DEBIAN_FRONTEND": "noninteractive",
    "DEBCONF_NONINTERACTIVE_SEEN": "true",
}

APT_CONF_PATH = "/etc/apt/apt.conf.d/90toolchain-provisioner"

# apt-get diagnostics that name the package the resolver gave up on.
_FAILED_PACKAGE_PATTERNS = [
    re.compile(r"^E: Unable to locate package (?P<pkg>\S+)"),
    re.compile(r"^E: Package '(?P<pkg>[^']+)' has no installation candidate"),
    re.compile(r"^E: Version '[^']+' for '(?P<pkg>[^']+)' was not found"),
    re.compile(r"^E: Couldn't find any package by (?:regex|glob) '(?P<pkg>[^']+)'"),
    re.compile(r"^\s*(?P<pkg>[a-z0-9][a-z0-9+.-]+) : (?:Pre)?Depends: "),
]
_DPKG_ERROR_RE = re.compile(r"^dpkg: error processing package (?P<pkg>[a-z0-9][a-z0-9+.-]+)")


def apt_conf(
    *, non_interactive: bool = True, install_recommends: bool = False, install_suggests: bool = False
) -> str:
    """apt.conf drop-in written into the environment before any package operation."""

    def flag(v: bool) -> str:
        return "true" if v else "false"

    conf = (
        f'APT::Install-Recommends "{flag(install_recommends)}";\n'
        f'APT::Install-Suggests "{flag(install_suggests)}";\n'
    )
    if non_interactive:
        conf += 'APT::Get::Assume-Yes "true";\n'
        conf += 'Dpkg::Options { "--force-confdef"; "--force-confold"; };\n'
    return conf


def apt_update_argv() -> List[str]:
    return ["apt-get", "update"]


def apt_install_options(
    *,
    non_interactive: bool = True,
    with_recommends: bool = False,
    with_suggests: bool = False,
) -> List[str]:
    opts: List[str] = []
    if non_interactive:
        opts += ["-y", "-o", "Dpkg::Options::=--force-confdef", "-o", "Dpkg::Options::=--force-confold"]
    if not with_recommends:
        opts.append("--no-install-recommends")
    if not with_suggests:
        opts += ["-o", "APT::Install-Suggests=false"]
    return opts


def apt_install_argv(
    packages: Sequence[str],
    *,
    non_interactive: bool = True,
    with_recommends: bool = False,
    with_suggests: bool = False,
) -> List[str]:
    """One apt-get invocation for the whole package set, in the given order."""

    if not packages:
        raise ValueError("apt_install_argv requires at least one package")
    opts = apt_install_options(
        non_interactive=non_interactive, with_recommends=with_recommends, with_suggests=with_suggests
    )
    return ["apt-get", "install", *opts, *packages]


def installed_packages_argv() -> List[str]:
    return ["dpkg-query", "-W", "-f", "${Package}=${Version}\\n"]


def parse_installed(output: str) -> List[str]:
    return sorted({ln.strip() for ln in output.splitlines() if ln.strip()})


def find_failed_package(lines: Iterable[str], requested: Sequence[str]) -> Optional[str]:
    """Identify the first requested package apt reports as failing.

    Returns the requested entry (e.g. ``foo=1.0``) when apt names its package,
    the bare name when apt names a package that was not requested directly,
    or None when the output names nothing.
    """

    by_name = {r.split("=", 1)[0].split(":", 1)[0]: r for r in requested}
    fallback: Optional[str] = None
    for line in lines:
        for rx in (*_FAILED_PACKAGE_PATTERNS, _DPKG_ERROR_RE):
            m = rx.match(line)
            if not m:
                continue
            name = m.group("pkg").split(":", 1)[0]
            if name in by_name:
                return by_name[name]
            if fallback is None:
                fallback = name
    return fallback
