from __future__ import annotations

import logging

from ..errors import ErrorKind, ImageNotFound, ProvisioningError
from ..lib.command import CommandFailed, CommandTimeout
from ..pipeline import RunContext, timed_out

logger = logging.getLogger(__name__)


class SelectBaseImageStep:
    step_id = "10_select_base_image"
    # Completed by the package manager configuration that follows.
    reaches = None

    def run(self, ctx: RunContext) -> None:
        ref = ctx.descriptor.base_image
        try:
            image = ctx.backend.resolve(ref, timeout_s=ctx.timeout())
        except ImageNotFound as e:
            raise ProvisioningError(
                ErrorKind.BASE_IMAGE_UNAVAILABLE, f"cannot resolve base image {ref}", logs=e.logs
            ) from e
        except CommandTimeout as e:
            raise timed_out(e, f"resolving {ref}") from e
        except OSError as e:
            raise ProvisioningError(
                ErrorKind.BASE_IMAGE_UNAVAILABLE, f"cannot query the image registry for {ref}: {e}"
            ) from e

        ctx.image = image
        logger.info("Resolved base image %s", ref)

        try:
            ctx.environment = ctx.backend.start(image, timeout_s=ctx.timeout())
        except CommandFailed as e:
            ctx.record(e.result)
            raise ProvisioningError(
                ErrorKind.BASE_IMAGE_UNAVAILABLE, f"cannot start an environment from {ref}"
            ) from e
        except CommandTimeout as e:
            raise timed_out(e, f"starting {ref}") from e
