from __future__ import annotations

import pytest

from toolchain_provisioner.lib.apt import (
    apt_conf,
    apt_install_argv,
    find_failed_package,
    parse_installed,
)


class TestInstallArgv:
    def test_single_invocation_preserves_order(self):
        argv = apt_install_argv(["pkg-config", "libssl-dev"])
        assert argv[:2] == ["apt-get", "install"]
        assert argv[-2:] == ["pkg-config", "libssl-dev"]
        assert argv.count("install") == 1

    def test_non_interactive_defaults(self):
        argv = apt_install_argv(["pkg-config"])
        assert "-y" in argv
        assert "Dpkg::Options::=--force-confold" in argv
        assert "--no-install-recommends" in argv
        assert "APT::Install-Suggests=false" in argv

    def test_recommends_opt_in(self):
        argv = apt_install_argv(["pkg-config"], with_recommends=True, with_suggests=True)
        assert "--no-install-recommends" not in argv
        assert "APT::Install-Suggests=false" not in argv

    def test_empty_package_list_rejected(self):
        with pytest.raises(ValueError):
            apt_install_argv([])


def test_apt_conf_disables_recommends_and_suggests():
    conf = apt_conf()
    assert 'APT::Install-Recommends "false";' in conf
    assert 'APT::Install-Suggests "false";' in conf
    assert "--force-confold" in conf


def test_apt_conf_interactive_has_no_assume_yes():
    assert "Assume-Yes" not in apt_conf(non_interactive=False)


class TestFindFailedPackage:
    REQUESTED = ["g++-x86-64-linux-gnu", "libssl-dev=3.0.2-0ubuntu1.15", "pkg-config"]

    @pytest.mark.parametrize(
        "line, expected",
        [
            ("E: Unable to locate package pkg-config", "pkg-config"),
            ("E: Package 'g++-x86-64-linux-gnu' has no installation candidate", "g++-x86-64-linux-gnu"),
            ("E: Version '3.0.2-0ubuntu1.15' for 'libssl-dev' was not found", "libssl-dev=3.0.2-0ubuntu1.15"),
            (" g++-x86-64-linux-gnu : Depends: gcc-11-x86-64-linux-gnu but it is not going to be installed",
             "g++-x86-64-linux-gnu"),
            ("dpkg: error processing package pkg-config (--configure):", "pkg-config"),
        ],
    )
    def test_named_requested_package(self, line, expected):
        lines = ["Reading package lists...", "Building dependency tree...", line]
        assert find_failed_package(lines, self.REQUESTED) == expected

    def test_requested_package_preferred_over_dependency(self):
        lines = [
            "dpkg: error processing package libssl3 (--configure):",
            "E: Unable to locate package pkg-config",
        ]
        assert find_failed_package(lines, self.REQUESTED) == "pkg-config"

    def test_dependency_returned_when_nothing_requested_is_named(self):
        lines = ["dpkg: error processing package libssl3 (--configure):"]
        assert find_failed_package(lines, self.REQUESTED) == "libssl3"

    def test_unidentifiable_failure(self):
        assert find_failed_package(["E: Could not get lock /var/lib/dpkg/lock-frontend"], self.REQUESTED) is None


def test_parse_installed_sorts_and_dedupes():
    out = "pkg-config=0.29.2-1ubuntu3\nbash=5.1-6ubuntu1\n\nbash=5.1-6ubuntu1\n"
    assert parse_installed(out) == ["bash=5.1-6ubuntu1", "pkg-config=0.29.2-1ubuntu3"]
