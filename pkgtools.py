"""Shared machinery for building the relocatable Python installer package.

Holds the error taxonomy, the task/context types the driver threads
through the pipeline, and a small wrapper around external commands.
"""

from __future__ import annotations

import shlex
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, NoReturn

if TYPE_CHECKING:
    from profiles import Profile
    from workspace import Workspace

PYTHON_VERSION = "3.8.3"
REPO_NAME = "relocatable-python"
RELOCATABLE_PYTHON_URL = f"https://github.com/gregneagle/{REPO_NAME}/archive/master.zip"
INSTALL_LOCATION = "/opt/mgmt"
PKG_PREFIX = "MacAdmins-Python"

UNZIP = "/usr/bin/unzip"
PKGBUILD = "/usr/bin/pkgbuild"
SCUTIL = "/usr/sbin/scutil"


class PackagingException(Exception):
    """An error happened while building the package"""


class InvalidProfile(PackagingException):
    """The requested profile is not one we know how to build"""


class PrivilegeError(PackagingException, PermissionError):
    """The tool is not running with the privileges it needs"""


class WorkspaceError(PackagingException):
    """The working directory could not be prepared"""


class FetchError(PackagingException):
    """The relocatable-python archive could not be downloaded"""


class ExtractError(PackagingException):
    """The downloaded archive could not be unpacked"""


class BuildError(PackagingException):
    """The relocatable Python framework could not be built"""


class PackageBuildError(PackagingException):
    """The installer package could not be assembled"""


class ConsoleUserError(PackagingException):
    """Nobody is logged in to receive the package"""


@dataclass
class BuildContext:
    profile: Profile
    python_version: str = PYTHON_VERSION
    source_url: str = RELOCATABLE_PYTHON_URL
    install_location: str = INSTALL_LOCATION
    workspace_base: Path | None = None
    output_dir: Path | None = None
    verbose: bool = True
    workspace: Workspace | None = None
    artifact: Path | None = None

    @property
    def ws(self) -> Workspace:
        if self.workspace is None:
            raise WorkspaceError("The workspace has not been created yet")
        return self.workspace


@dataclass
class Task:
    function: Callable[[BuildContext], None]
    description: str

    def __call__(self, context: BuildContext) -> Any:
        return getattr(self, "function")(context)


@dataclass(frozen=True)
class Command:
    args: list[str]
    error: type[PackagingException] = PackagingException
    input: str | None = None
    success: Callable[[int], bool] = field(default=lambda returncode: returncode == 0)

    def __str__(self) -> str:
        return shlex.join(self.args)


@dataclass(frozen=True)
class CommandResult:
    command: Command
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.command.success(self.returncode)


def error(*msgs: Any) -> NoReturn:
    print("**ERROR**", file=sys.stderr)
    for msg in msgs:
        print(msg, file=sys.stderr)
    sys.exit(1)


def run_command(command: Command, *, verbose: bool = True, **kwargs: Any) -> CommandResult:
    """
    Run a command and raise the command's error class if it fails. Output
    is captured; it is echoed when verbose or when the command fails.
    """
    print(f"Executing {command}")
    try:
        proc = subprocess.run(
            command.args,
            input=command.input,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            **kwargs,
        )
    except OSError as e:
        raise command.error(f"{command} could not be started: {e}") from e
    result = CommandResult(command, proc.returncode, proc.stdout or "")
    if verbose or not result.ok:
        sys.stdout.write(result.output)
        sys.stdout.flush()
    if not result.ok:
        raise command.error(f"{command} failed. Error Code: {result.returncode}")
    return result


def check_tool(context: BuildContext, tool: str) -> None:
    if shutil.which(tool) is None:
        raise PackagingException(f"{tool} is not available")
