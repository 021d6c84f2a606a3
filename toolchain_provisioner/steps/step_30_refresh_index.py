from __future__ import annotations

import logging

from ..errors import ErrorKind, ProvisioningError
from ..lib.command import CommandTimeout
from ..pipeline import RunContext, timed_out
from ..result import ProvisioningState

logger = logging.getLogger(__name__)


class RefreshIndexStep:
    step_id = "30_refresh_index"
    reaches = ProvisioningState.INDEX_REFRESHED

    def run(self, ctx: RunContext) -> None:
        attempts = 1 + ctx.config.index_refresh_retries
        for attempt in range(1, attempts + 1):
            try:
                r = ctx.record(ctx.backend.refresh_index(timeout_s=ctx.timeout()))
            except CommandTimeout as e:
                raise timed_out(e, "refreshing the package index") from e
            if r.returncode == 0:
                return
            logger.warning("Package index refresh failed (attempt %d/%d)", attempt, attempts)
            if ctx.cancel.is_set():
                break

        raise ProvisioningError(
            ErrorKind.INDEX_REFRESH_FAILED, f"package index refresh failed after {attempts} attempt(s)"
        )
