from .step_10_select_base_image import SelectBaseImageStep
from .step_20_configure_package_manager import ConfigurePackageManagerStep
from .step_30_refresh_index import RefreshIndexStep
from .step_40_install_packages import InstallPackagesStep

__all__ = [
    "SelectBaseImageStep",
    "ConfigurePackageManagerStep",
    "RefreshIndexStep",
    "InstallPackagesStep",
]
