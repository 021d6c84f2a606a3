from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from .errors import EXIT_CODES, ErrorKind, ProvisioningError


class ProvisioningState(str, Enum):
    UNINITIALIZED = "Uninitialized"
    BASE_IMAGE_SELECTED = "BaseImageSelected"
    INDEX_REFRESHED = "IndexRefreshed"
    PACKAGES_INSTALLED = "PackagesInstalled"
    FAILED = "Failed"


@dataclass(frozen=True)
class ProvisioningResult:
    success: bool
    platform: str
    state: ProvisioningState
    logs: Tuple[str, ...] = ()
    failed_package: Optional[str] = None
    failed_step: Optional[str] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    image: Optional[str] = None
    environment: Optional[str] = None
    installed_packages: Tuple[str, ...] = ()
    compiler_version: Optional[str] = None
    duration_s: float = 0.0
    steps: Tuple[str, ...] = field(default=())

    @classmethod
    def failure(
        cls,
        err: ProvisioningError,
        *,
        platform: str,
        step: Optional[str],
        logs: Sequence[str],
        **kw: Any,
    ) -> "ProvisioningResult":
        return cls(
            success=False,
            platform=platform,
            state=ProvisioningState.FAILED,
            logs=tuple(logs) + err.logs,
            failed_package=err.package,
            failed_step=step,
            error=err.kind,
            message=err.message,
            **kw,
        )

    @property
    def exit_code(self) -> int:
        if self.success or self.error is None:
            return 0
        return EXIT_CODES[self.error]

    def diagnostic(self) -> str:
        """One line naming the failed step and, when known, the failed package."""
        if self.success:
            return f"[{self.platform}] provisioned in {self.duration_s:.1f}s"
        msg = f"[{self.platform}] {self.error.value if self.error else 'Failed'} at step {self.failed_step}: {self.message}"
        if self.failed_package:
            msg += f" (package: {self.failed_package})"
        return msg

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "platform": self.platform,
            "state": self.state.value,
            "error": self.error.value if self.error else None,
            "failed_step": self.failed_step,
            "failed_package": self.failed_package,
            "message": self.message,
            "image": self.image,
            "environment": self.environment,
            "installed_packages": list(self.installed_packages),
            "compiler_version": self.compiler_version,
            "duration_s": round(self.duration_s, 3),
            "steps": list(self.steps),
            "logs": list(self.logs),
        }


def save_report(path: str, results: Sequence[ProvisioningResult]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = {"results": [r.to_dict() for r in results]}
    p.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
