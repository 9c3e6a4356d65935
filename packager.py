"""Turn a built Python framework into an installer package with pkgbuild."""

from __future__ import annotations

import datetime
import grp
import os
import pwd
import stat
from pathlib import Path

from pkgtools import (
    PKG_PREFIX,
    PKGBUILD,
    SCUTIL,
    Command,
    ConsoleUserError,
    PackageBuildError,
    PrivilegeError,
    run_command,
)

# a+x
STAT_EXEC = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH

FRAMEWORK_NAME = "python3.framework"


def rename_framework(frameworks: Path) -> Path:
    """
    Rename the Python framework to avoid a naming conflict with future
    Python frameworks.
    """
    source = frameworks / "Python.framework"
    target = frameworks / FRAMEWORK_NAME
    if not source.is_dir():
        raise PackageBuildError(f"{source} was not produced by the build")
    if target.exists():
        raise PackageBuildError(f"{target} already exists")
    try:
        source.rename(target)
    except OSError as e:
        raise PackageBuildError(f"Could not rename {source}: {e}") from e
    return target


def link_python(pkg_root: Path, install_location: str) -> Path:
    link = pkg_root / "bin" / "python3"
    try:
        link.parent.mkdir(parents=True, exist_ok=True)
        link.symlink_to(
            f"{install_location}/frameworks/{FRAMEWORK_NAME}/Versions/Current/bin/python3"
        )
    except OSError as e:
        raise PackageBuildError(f"Could not create {link}: {e}") from e
    return link


def set_ownership(pkg_root: Path, owner: str = "root", group: str = "wheel") -> None:
    try:
        uid = pwd.getpwnam(owner).pw_uid
        gid = grp.getgrnam(group).gr_gid
    except KeyError as e:
        raise PrivilegeError(f"Unknown owner {owner}:{group}") from e

    try:
        os.chown(pkg_root, uid, gid, follow_symlinks=False)
        for dirpath, dirnames, filenames in os.walk(pkg_root):
            for name in dirnames + filenames:
                os.chown(os.path.join(dirpath, name), uid, gid, follow_symlinks=False)
    except OSError as e:
        raise PrivilegeError(
            f"Could not change ownership of {pkg_root} to {owner}:{group}: {e}"
        ) from e


def write_postinstall(scripts: Path, install_location: str) -> Path:
    postinstall = scripts / "postinstall"
    try:
        postinstall.write_text(
            "#!/bin/zsh\n"
            "[ -d /opt ] && /usr/bin/chflags hidden /opt\n"
            f"/usr/bin/chflags hidden {install_location}\n"
        )
        mode = stat.S_IMODE(postinstall.stat().st_mode)
        postinstall.chmod(mode | STAT_EXEC)
    except OSError as e:
        raise PackageBuildError(f"Could not write {postinstall}: {e}") from e
    return postinstall


def artifact_path(
    output_dir: Path,
    python_version: str,
    profile: str,
    now: datetime.datetime | None = None,
) -> Path:
    timestamp = (now or datetime.datetime.now()).strftime("%Y%m%d%H%M%S")
    return output_dir / f"{PKG_PREFIX}-{python_version}-{profile}-{timestamp}.pkg"


def console_user() -> str | None:
    """Return the user logged in at the console, if any."""
    result = run_command(
        Command([SCUTIL], input="show State:/Users/ConsoleUser\n"), verbose=False
    )
    for line in result.output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "Name":
            user = value.strip()
            if user and user != "loginwindow":
                return user
    return None


def default_output_dir() -> Path:
    user = console_user()
    if user is None:
        raise ConsoleUserError(
            "No user is logged in at the console; pass --output-dir instead"
        )
    return Path("/Users") / user / "Desktop"


def build_package(
    pkg_root: Path,
    install_location: str,
    scripts: Path,
    output: Path,
    *,
    verbose: bool = True,
) -> Path:
    run_command(
        Command(
            [
                PKGBUILD,
                "--root",
                str(pkg_root),
                "--install-location",
                install_location,
                "--scripts",
                str(scripts),
                str(output),
            ],
            error=PackageBuildError,
        ),
        verbose=verbose,
    )
    return output
