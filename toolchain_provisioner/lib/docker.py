from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..errors import ImageNotFound
from .apt import (
    APT_CONF_PATH,
    NONINTERACTIVE_ENV,
    apt_conf,
    apt_install_argv,
    apt_update_argv,
    installed_packages_argv,
    parse_installed,
)
from .command import CmdResult, CommandFailed, CommandTimeout, Runner, run_cmd

logger = logging.getLogger(__name__)

# Upper bound for removing an environment, independent of the run deadline.
DISCARD_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class ImageHandle:
    reference: str
    image_id: str


class DockerBackend:
    """Registry and package manager for one throwaway container.

    The container is started from the resolved base image and kept alive with
    ``sleep infinity``; every package operation is a ``docker exec`` into it.
    One backend instance serves exactly one provisioning run.
    """

    def __init__(
        self,
        *,
        docker_binary: str = "docker",
        non_interactive: bool = True,
        install_recommends: bool = False,
        install_suggests: bool = False,
        dry_run: bool = False,
        runner: Runner = run_cmd,
        clock=time.monotonic,
    ) -> None:
        self.docker = docker_binary
        self.non_interactive = non_interactive
        self.install_recommends = install_recommends
        self.install_suggests = install_suggests
        self.dry_run = dry_run
        self._run = runner
        self._clock = clock
        self.container: Optional[str] = None
        self.container_name = f"toolchain-provisioner-{uuid.uuid4().hex[:12]}"

    def _docker(self, args: Sequence[str], *, check: bool = True, timeout_s: Optional[float] = None) -> CmdResult:
        return self._run([self.docker, *args], check=check, timeout_s=timeout_s, dry_run=self.dry_run)

    def _exec(self, argv: Sequence[str], *, check: bool = True, timeout_s: Optional[float] = None) -> CmdResult:
        if self.container is None:
            raise RuntimeError("environment not started")
        env_args: List[str] = []
        if self.non_interactive:
            for k, v in NONINTERACTIVE_ENV.items():
                env_args += ["-e", f"{k}={v}"]
        # No -i / -t: the command never gets a terminal to prompt on.
        return self._docker(["exec", *env_args, self.container, *argv], check=check, timeout_s=timeout_s)

    def _budget(self, expires_at: Optional[float], args: Sequence[str], timeout_s: Optional[float]) -> Optional[float]:
        if expires_at is None:
            return None
        left = expires_at - self._clock()
        if left <= 0:
            raise CommandTimeout([self.docker, *args], float(timeout_s or 0))
        return left

    def resolve(self, reference: str, *, timeout_s: Optional[float] = None) -> ImageHandle:
        """Return a local handle for reference, pulling it when absent.

        timeout_s bounds the whole lookup; each command gets what is left of it.
        """

        expires_at = None if timeout_s is None else self._clock() + timeout_s
        inspect = ["image", "inspect", "--format", "{{.Id}}", reference]
        r = self._docker(inspect, check=False, timeout_s=self._budget(expires_at, inspect, timeout_s))
        if r.returncode != 0:
            logger.info("Image %s not present locally; pulling", reference)
            pull = ["pull", reference]
            pulled = self._docker(pull, check=False, timeout_s=self._budget(expires_at, pull, timeout_s))
            if pulled.returncode != 0:
                raise ImageNotFound(reference, logs=pulled.lines())
            r = self._docker(inspect, check=False, timeout_s=self._budget(expires_at, inspect, timeout_s))
            if r.returncode != 0:
                raise ImageNotFound(reference, logs=r.lines())
        image_id = r.stdout.strip() or reference
        return ImageHandle(reference=reference, image_id=image_id)

    def start(self, image: ImageHandle, *, timeout_s: Optional[float] = None) -> str:
        r = self._docker(
            ["run", "-d", "--name", self.container_name, image.image_id, "sleep", "infinity"],
            timeout_s=timeout_s,
        )
        self.container = r.stdout.strip() or self.container_name
        logger.info("Started environment %s from %s", self.container, image.reference)
        return self.container

    def configure(self, *, timeout_s: Optional[float] = None) -> None:
        self._exec(
            [
                "sh",
                "-c",
                'printf "%s" "$1" > "$2"',
                "sh",
                apt_conf(
                    non_interactive=self.non_interactive,
                    install_recommends=self.install_recommends,
                    install_suggests=self.install_suggests,
                ),
                APT_CONF_PATH,
            ],
            timeout_s=timeout_s,
        )

    def refresh_index(self, *, timeout_s: Optional[float] = None) -> CmdResult:
        return self._exec(apt_update_argv(), check=False, timeout_s=timeout_s)

    def install_atomic(self, names: Sequence[str], *, timeout_s: Optional[float] = None) -> CmdResult:
        argv = apt_install_argv(
            names,
            non_interactive=self.non_interactive,
            with_recommends=self.install_recommends,
            with_suggests=self.install_suggests,
        )
        return self._exec(argv, check=False, timeout_s=timeout_s)

    def installed_packages(self, *, timeout_s: Optional[float] = None) -> List[str]:
        r = self._exec(installed_packages_argv(), timeout_s=timeout_s)
        return parse_installed(r.stdout)

    def run(self, argv: Sequence[str], *, timeout_s: Optional[float] = None) -> CmdResult:
        return self._exec(argv, check=False, timeout_s=timeout_s)

    def discard(self) -> None:
        if self.container is None:
            return
        try:
            self._docker(["rm", "-f", self.container], timeout_s=DISCARD_TIMEOUT_S)
        except (CommandFailed, CommandTimeout, OSError) as e:
            logger.warning("Failed to remove environment %s: %s", self.container, e)
        else:
            logger.info("Discarded environment %s", self.container)
        self.container = None

