from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from toolchain_provisioner.errors import ImageNotFound
from toolchain_provisioner.lib.command import CmdResult, CommandFailed, CommandTimeout
from toolchain_provisioner.lib.docker import ImageHandle

SCENARIO_A_PACKAGES = [
    "g++-x86-64-linux-gnu",
    "libc6-dev-amd64-cross",
    "libssl-dev",
    "pkg-config",
]

# Packages every fake Ubuntu image starts with.
BASE_SYSTEM = {"base-files": "12ubuntu4", "bash": "5.1-6ubuntu1", "coreutils": "8.32-4.1ubuntu1"}

# name -> (version, transitive dependencies)
FAKE_ARCHIVE: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "g++-x86-64-linux-gnu": ("4:11.2.0-1ubuntu1", ("gcc-11-x86-64-linux-gnu", "binutils-x86-64-linux-gnu")),
    "libc6-dev-amd64-cross": ("2.35-0ubuntu1cross3", ("linux-libc-dev-amd64-cross",)),
    "libssl-dev": ("3.0.2-0ubuntu1.15", ("libssl3",)),
    "pkg-config": ("0.29.2-1ubuntu3", ()),
    "g++-aarch64-linux-gnu": ("4:11.2.0-1ubuntu1", ("gcc-11-aarch64-linux-gnu",)),
    "libc6-dev-arm64-cross": ("2.35-0ubuntu1cross3", ()),
}
FAKE_DEPS = {
    "gcc-11-x86-64-linux-gnu": "11.4.0-1ubuntu1~22.04cross1",
    "binutils-x86-64-linux-gnu": "2.38-4ubuntu2.6",
    "linux-libc-dev-amd64-cross": "5.15.0-22.22cross3",
    "libssl3": "3.0.2-0ubuntu1.15",
    "gcc-11-aarch64-linux-gnu": "11.4.0-1ubuntu1~22.04cross1",
}


def ok(argv: Sequence[str], stdout: str = "", stderr: str = "") -> CmdResult:
    return CmdResult(argv=list(argv), returncode=0, stdout=stdout, stderr=stderr)


def failed(argv: Sequence[str], stderr: str, returncode: int = 100) -> CmdResult:
    return CmdResult(argv=list(argv), returncode=returncode, stdout="", stderr=stderr)


class FakeBackend:
    """In-memory environment that behaves like an Ubuntu container."""

    def __init__(
        self,
        *,
        images: Sequence[str] = ("ubuntu:jammy", "ubuntu:noble"),
        refresh_failures: int = 0,
        on_refresh: Optional[Callable[[], None]] = None,
    ) -> None:
        self.images = set(images)
        self.refresh_failures = refresh_failures
        self.on_refresh = on_refresh
        self.calls: List[str] = []
        self.timeouts: List[Optional[float]] = []
        self.installed: Dict[str, str] = {}
        self.index_ready = False
        self.started = False
        self.discarded = False
        self.install_requests: List[List[str]] = []

    def resolve(self, reference: str, *, timeout_s: Optional[float] = None) -> ImageHandle:
        self.calls.append("resolve")
        self.timeouts.append(timeout_s)
        if reference not in self.images:
            raise ImageNotFound(reference, logs=[f"Error response from daemon: manifest for {reference} not found"])
        return ImageHandle(reference=reference, image_id="sha256:" + "ab" * 32)

    def start(self, image: ImageHandle, *, timeout_s: Optional[float] = None) -> str:
        self.calls.append("start")
        self.started = True
        self.installed = dict(BASE_SYSTEM)
        return "c0ffee"

    def configure(self, *, timeout_s: Optional[float] = None) -> None:
        self.calls.append("configure")

    def refresh_index(self, *, timeout_s: Optional[float] = None) -> CmdResult:
        self.calls.append("refresh_index")
        self.timeouts.append(timeout_s)
        if self.on_refresh is not None:
            self.on_refresh()
        argv = ["apt-get", "update"]
        if self.refresh_failures > 0:
            self.refresh_failures -= 1
            return failed(argv, "E: Failed to fetch http://archive.ubuntu.com/ubuntu/dists/jammy/InRelease", 100)
        self.index_ready = True
        return ok(argv, "Reading package lists... Done")

    def install_atomic(self, names: Sequence[str], *, timeout_s: Optional[float] = None) -> CmdResult:
        self.calls.append("install_atomic")
        self.install_requests.append(list(names))
        argv = ["apt-get", "install", "-y", "--no-install-recommends", *names]
        if not self.index_ready:
            return failed(argv, f"E: Unable to locate package {names[0]}")
        for n in names:
            if n.split("=", 1)[0] not in FAKE_ARCHIVE:
                return failed(argv, f"Reading package lists...\nE: Unable to locate package {n}")
        for n in names:
            version, deps = FAKE_ARCHIVE[n.split("=", 1)[0]]
            self.installed[n.split("=", 1)[0]] = version
            for d in deps:
                self.installed[d] = FAKE_DEPS[d]
        return ok(argv, f"{len(names)} newly installed")

    def installed_packages(self, *, timeout_s: Optional[float] = None) -> List[str]:
        self.calls.append("installed_packages")
        return sorted(f"{k}={v}" for k, v in self.installed.items())

    def run(self, argv: Sequence[str], *, timeout_s: Optional[float] = None) -> CmdResult:
        self.calls.append("run:" + argv[0])
        if argv[0] == "x86_64-linux-gnu-g++" and "g++-x86-64-linux-gnu" in self.installed:
            return ok(argv, "x86_64-linux-gnu-g++ (Ubuntu 11.4.0-1ubuntu1~22.04) 11.4.0\n")
        if argv[0] == "aarch64-linux-gnu-g++" and "g++-aarch64-linux-gnu" in self.installed:
            return ok(argv, "aarch64-linux-gnu-g++ (Ubuntu 11.4.0-1ubuntu1~22.04) 11.4.0\n")
        return failed(argv, f"sh: 1: {argv[0]}: not found", 127)

    def discard(self) -> None:
        self.calls.append("discard")
        self.discarded = True


class FakeRunner:
    """Stands in for run_cmd; answers commands by matching argv prefixes."""

    def __init__(self) -> None:
        self.calls: List[dict] = []
        self.rules: List[list] = []

    def on(
        self,
        prefix: Sequence[str],
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        times: Optional[int] = None,
        hang: bool = False,
    ) -> None:
        """Answer commands starting with prefix; a rule with times runs out after that many matches.

        hang makes the command run into its timeout.
        """
        self.rules.append([tuple(prefix), returncode, stdout, stderr, times, hang])

    def __call__(self, argv, *, check=True, env=None, input_text=None, timeout_s=None, dry_run=False) -> CmdResult:
        argv = list(argv)
        self.calls.append({"argv": argv, "check": check, "timeout_s": timeout_s, "dry_run": dry_run})
        result = CmdResult(argv=argv, returncode=0, stdout="", stderr="")
        for rule in self.rules:
            prefix, returncode, stdout, stderr, times, hang = rule
            if times == 0 or tuple(argv[: len(prefix)]) != prefix:
                continue
            if times is not None:
                rule[4] = times - 1
            if hang:
                raise CommandTimeout(argv, float(timeout_s or 0))
            result = CmdResult(argv=argv, returncode=returncode, stdout=stdout, stderr=stderr)
            break
        if check and result.returncode != 0:
            raise CommandFailed(result)
        return result

    def argvs(self) -> List[List[str]]:
        return [c["argv"] for c in self.calls]


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
