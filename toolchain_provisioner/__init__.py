"""Toolchain provisioner: reproducible cross-compilation environments.

Core design goals:
- One declarative descriptor per target platform
- Fixed step order, enforced as a state machine
- Non-interactive, single-transaction package installs
- Failures returned as structured results, never half-provisioned environments
"""

from .config import ProvisionerConfig
from .descriptor import PlatformDescriptor
from .errors import ErrorKind, ProvisioningError
from .provisioner import Provisioner
from .result import ProvisioningResult, ProvisioningState

__all__ = [
    "ErrorKind",
    "PlatformDescriptor",
    "Provisioner",
    "ProvisionerConfig",
    "ProvisioningError",
    "ProvisioningResult",
    "ProvisioningState",
]
