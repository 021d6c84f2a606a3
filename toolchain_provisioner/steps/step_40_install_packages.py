from __future__ import annotations

import logging

from ..errors import ErrorKind, ProvisioningError
from ..lib.apt import find_failed_package
from ..lib.command import CommandFailed, CommandTimeout
from ..pipeline import RunContext, timed_out
from ..result import ProvisioningState
from ..triples import compiler_binary, compiler_package

logger = logging.getLogger(__name__)


class InstallPackagesStep:
    step_id = "40_install_packages"
    reaches = ProvisioningState.PACKAGES_INSTALLED

    def run(self, ctx: RunContext) -> None:
        packages = list(ctx.descriptor.packages)
        try:
            r = ctx.record(ctx.backend.install_atomic(packages, timeout_s=ctx.timeout()))
        except CommandTimeout as e:
            raise timed_out(e, "installing packages") from e

        if r.returncode != 0:
            failed = find_failed_package(r.lines(), packages)
            raise ProvisioningError(
                ErrorKind.PACKAGE_INSTALL_FAILED,
                f"apt-get install exited with {r.returncode}",
                package=failed,
            )
        logger.info("Installed %d package(s): %s", len(packages), " ".join(packages))

        try:
            ctx.installed_packages = ctx.backend.installed_packages(timeout_s=ctx.timeout())
        except CommandFailed as e:
            ctx.record(e.result)
            raise ProvisioningError(
                ErrorKind.PACKAGE_INSTALL_FAILED, "installed package set cannot be read"
            ) from e
        except CommandTimeout as e:
            raise timed_out(e, "listing installed packages") from e

        if ctx.config.verify_toolchain:
            self._verify_compiler(ctx)

    def _verify_compiler(self, ctx: RunContext) -> None:
        triple = ctx.descriptor.target_triple
        pkg = compiler_package(triple)
        if pkg not in ctx.descriptor.package_names:
            return

        binary = compiler_binary(triple)
        try:
            r = ctx.record(ctx.backend.run([binary, "--version"], timeout_s=ctx.timeout()))
        except CommandTimeout as e:
            raise timed_out(e, f"running {binary}") from e
        if r.returncode != 0:
            raise ProvisioningError(
                ErrorKind.PACKAGE_INSTALL_FAILED, f"{binary} is not runnable after install", package=pkg
            )
        ctx.compiler_version = (r.stdout.splitlines() or [""])[0].strip() or None
        logger.info("Cross compiler ready: %s", ctx.compiler_version or binary)
