from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence


class ErrorKind(str, Enum):
    BASE_IMAGE_UNAVAILABLE = "BaseImageUnavailable"
    INDEX_REFRESH_FAILED = "IndexRefreshFailed"
    PACKAGE_INSTALL_FAILED = "PackageInstallFailed"
    TIMEOUT = "Timeout"
    CANCELLED = "Cancelled"


# Exit codes for the CLI. 2 is left to argparse / invalid configuration.
EXIT_CODES = {
    ErrorKind.BASE_IMAGE_UNAVAILABLE: 10,
    ErrorKind.INDEX_REFRESH_FAILED: 11,
    ErrorKind.PACKAGE_INSTALL_FAILED: 12,
    ErrorKind.TIMEOUT: 13,
    ErrorKind.CANCELLED: 14,
}

EXIT_CONFIG_ERROR = 2


class ProvisioningError(Exception):
    """A run-terminating failure of the environment being provisioned."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        package: Optional[str] = None,
        logs: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.package = package
        self.logs = tuple(logs)

    def __str__(self) -> str:
        if self.package:
            return f"{self.kind.value}: {self.message} (package: {self.package})"
        return f"{self.kind.value}: {self.message}"


class DescriptorError(ValueError):
    pass


class ImageNotFound(RuntimeError):
    def __init__(self, reference: str, logs: Sequence[str] = ()) -> None:
        super().__init__(f"Base image not found: {reference}")
        self.reference = reference
        self.logs = tuple(logs)


class InvalidTransition(RuntimeError):
    pass
