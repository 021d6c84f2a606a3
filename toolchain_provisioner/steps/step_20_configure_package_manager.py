from __future__ import annotations

import logging

from ..errors import ErrorKind, ProvisioningError
from ..lib.command import CommandFailed, CommandTimeout
from ..pipeline import RunContext, timed_out
from ..result import ProvisioningState

logger = logging.getLogger(__name__)


class ConfigurePackageManagerStep:
    step_id = "20_configure_package_manager"
    reaches = ProvisioningState.BASE_IMAGE_SELECTED

    def run(self, ctx: RunContext) -> None:
        if not ctx.config.non_interactive:
            # Commands would still run without a terminal, so prompts fail instead of blocking.
            logger.warning("non_interactive disabled; package operations may fail on prompts")
        try:
            ctx.backend.configure(timeout_s=ctx.timeout())
        except CommandFailed as e:
            ctx.record(e.result)
            raise ProvisioningError(
                ErrorKind.BASE_IMAGE_UNAVAILABLE,
                f"package manager in {ctx.descriptor.base_image} cannot be configured",
            ) from e
        except CommandTimeout as e:
            raise timed_out(e, "configuring the package manager") from e
