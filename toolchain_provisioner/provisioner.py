from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

from .config import ProvisionerConfig
from .descriptor import PlatformDescriptor
from .errors import ProvisioningError
from .lib.docker import DockerBackend
from .pipeline import Backend, Deadline, RunContext, Step, run_pipeline
from .result import ProvisioningResult
from .steps import (
    ConfigurePackageManagerStep,
    InstallPackagesStep,
    RefreshIndexStep,
    SelectBaseImageStep,
)

logger = logging.getLogger(__name__)

BackendFactory = Callable[[ProvisionerConfig], Backend]


def build_steps() -> List[Step]:
    return [
        SelectBaseImageStep(),
        ConfigurePackageManagerStep(),
        RefreshIndexStep(),
        InstallPackagesStep(),
    ]


def docker_backend(config: ProvisionerConfig) -> Backend:
    return DockerBackend(
        docker_binary=config.docker_binary,
        non_interactive=config.non_interactive,
        install_recommends=config.install_recommends,
        install_suggests=config.install_suggests,
        dry_run=config.dry_run,
    )


class Provisioner:
    """Turns a PlatformDescriptor into a provisioned environment.

    Each call to provision() gets its own backend from the factory, so
    independent runs share no mutable state and may execute in parallel.
    """

    def __init__(
        self,
        config: Optional[ProvisionerConfig] = None,
        *,
        backend_factory: BackendFactory = docker_backend,
    ) -> None:
        self.config = config or ProvisionerConfig()
        self.backend_factory = backend_factory

    def provision(
        self,
        descriptor: PlatformDescriptor,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> ProvisioningResult:
        descriptor.validate()
        backend = self.backend_factory(self.config)
        ctx = RunContext(
            descriptor=descriptor,
            config=self.config,
            backend=backend,
            deadline=Deadline(self.config.timeout_s),
            cancel=cancel or threading.Event(),
        )
        started = time.monotonic()
        logger.info(
            "[%s] Provisioning %s on %s (%d package(s))",
            descriptor.name,
            descriptor.target_triple,
            descriptor.base_image,
            len(descriptor.packages),
        )

        try:
            run_pipeline(ctx, build_steps())
        except ProvisioningError as e:
            ctx.machine.fail()
            logger.error("[%s] %s", descriptor.name, e)
            environment = ctx.environment
            if self.config.keep_environment:
                logger.warning("[%s] Keeping failed environment %s for inspection", descriptor.name, environment)
            else:
                backend.discard()
                environment = None
            return ProvisioningResult.failure(
                e,
                platform=descriptor.name,
                step=ctx.current_step,
                logs=ctx.logs,
                image=_image_id(ctx.image),
                environment=environment,
                duration_s=time.monotonic() - started,
                steps=tuple(ctx.ran_steps),
            )
        except BaseException:
            if not ctx.machine.terminal:
                ctx.machine.fail()
            backend.discard()
            raise

        result = ProvisioningResult(
            success=True,
            platform=descriptor.name,
            state=ctx.machine.state,
            logs=tuple(ctx.logs),
            image=_image_id(ctx.image),
            environment=ctx.environment,
            installed_packages=tuple(ctx.installed_packages),
            compiler_version=ctx.compiler_version,
            duration_s=time.monotonic() - started,
            steps=tuple(ctx.ran_steps),
        )
        logger.info("[%s] Provisioned environment %s", descriptor.name, ctx.environment)
        return result


def _image_id(image: object) -> Optional[str]:
    if image is None:
        return None
    return getattr(image, "image_id", None) or str(image)
