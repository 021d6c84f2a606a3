from __future__ import annotations

from typing import List

from ..config import ProvisionerConfig
from ..descriptor import PlatformDescriptor
from .apt import apt_install_options


def render_dockerfile(descriptor: PlatformDescriptor, config: ProvisionerConfig | None = None) -> str:
    """Render the static recipe equivalent to provisioning descriptor.

    DEBIAN_FRONTEND is a build ARG, so it does not leak into the final image.
    """

    cfg = config or ProvisionerConfig()
    lines: List[str] = [
        f"# {descriptor.name}: cross toolchain for {descriptor.target_triple}",
        f"FROM {descriptor.base_image}",
    ]
    if cfg.non_interactive:
        lines.append("ARG DEBIAN_FRONTEND=noninteractive")

    update = " || ".join(["apt-get update"] * (1 + cfg.index_refresh_retries))
    if cfg.index_refresh_retries:
        update = f"({update})"
    opts = apt_install_options(
        non_interactive=cfg.non_interactive,
        with_recommends=cfg.install_recommends,
        with_suggests=cfg.install_suggests,
    )

    lines.append(f"RUN {update} \\")
    lines.append(f"    && apt-get install {' '.join(opts)} \\")
    for pkg in descriptor.packages:
        lines.append(f"        {pkg} \\")
    lines.append("    && rm -rf /var/lib/apt/lists/*")
    return "\n".join(lines) + "\n"
