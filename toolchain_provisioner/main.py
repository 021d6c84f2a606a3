from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .errors import EXIT_CODES, EXIT_CONFIG_ERROR, ErrorKind
from .lib.dockerfile import render_dockerfile
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .provisioner import Provisioner
from .result import ProvisioningResult, save_report
from .triples import KNOWN_TRIPLES, compiler_binary, default_packages

logger = logging.getLogger(__name__)


DEFAULT_CONFIG = "provision.yaml"


def _print_failure(result: ProvisioningResult) -> None:
    sys.stderr.write(result.diagnostic() + "\n")
    for ln in result.logs:
        sys.stderr.write(f"  {ln}\n")


def cmd_provision(args: argparse.Namespace) -> int:
    configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        cfg_file = load_config(args.config)
        platforms = cfg_file.platform(args.platform)
        config = cfg_file.provisioner.with_overrides(
            timeout_s=args.timeout,
            dry_run=True if args.dry_run else None,
            keep_environment=True if args.keep else None,
        )
    except (OSError, ValueError) as e:
        sys.stderr.write(f"Invalid configuration: {e}\n")
        return EXIT_CONFIG_ERROR
    if not platforms:
        sys.stderr.write("Invalid configuration: no platforms defined\n")
        return EXIT_CONFIG_ERROR

    cancel = threading.Event()

    def _on_sigint(signum, frame) -> None:
        logger.warning("Interrupted; cancelling at the next step boundary")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    provisioner = Provisioner(config)
    results: List[ProvisioningResult] = []
    try:
        for descriptor in platforms:
            logger.info("=== Platform: %s ===", descriptor.name)
            result = provisioner.provision(descriptor, cancel=cancel)
            results.append(result)
            if not result.success:
                _print_failure(result)
                break
            print(f"{result.platform}\t{result.environment or '-'}\t{result.compiler_version or ''}".rstrip())
    finally:
        signal.signal(signal.SIGINT, previous)
        if args.report:
            save_report(args.report, results)

    failed = next((r for r in results if not r.success), None)
    if failed is not None:
        return failed.exit_code
    if cancel.is_set():
        return EXIT_CODES[ErrorKind.CANCELLED]
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    try:
        cfg_file = load_config(args.config)
        platforms = cfg_file.platform(args.platform)
        config = cfg_file.provisioner
    except (OSError, ValueError) as e:
        sys.stderr.write(f"Invalid configuration: {e}\n")
        return EXIT_CONFIG_ERROR
    if len(platforms) != 1:
        sys.stderr.write("render needs exactly one platform; use --platform\n")
        return EXIT_CONFIG_ERROR

    text = render_dockerfile(platforms[0], config)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
    return 0


def cmd_triples(args: argparse.Namespace) -> int:
    for triple, arch in KNOWN_TRIPLES.items():
        print(f"{triple}\t{arch}\t{compiler_binary(triple)}\t{' '.join(default_packages(triple))}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="toolchain-provisioner")
    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("provision", help="Provision cross-compilation environments")
    sp.add_argument("--config", default=DEFAULT_CONFIG, help="Platform config (YAML)")
    sp.add_argument("--platform", default=None, help="Provision only the named platform")
    sp.add_argument("--timeout", type=float, default=None, help="Deadline in seconds per platform")
    sp.add_argument("--report", default=None, help="Write a JSON report of the results")
    sp.add_argument("--log", default=DEFAULT_LOG_PATH)
    sp.add_argument("--dry-run", action="store_true", help="Log commands without running them")
    sp.add_argument("--keep", action="store_true", help="Keep failed environments for inspection")
    sp.add_argument("-v", "--verbose", action="store_true", help="Log command output")
    sp.set_defaults(func=cmd_provision)

    sp = sub.add_parser("render", help="Print the equivalent Dockerfile")
    sp.add_argument("--config", default=DEFAULT_CONFIG)
    sp.add_argument("--platform", default=None)
    sp.add_argument("--output", default=None, help="Write to a file instead of stdout")
    sp.set_defaults(func=cmd_render)

    sp = sub.add_parser("triples", help="List recognized target triples")
    sp.set_defaults(func=cmd_triples)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        return EXIT_CODES[ErrorKind.CANCELLED]


if __name__ == "__main__":
    raise SystemExit(main())
