#!/usr/bin/env python3

"""Build a Relocatable Python installer package for /opt/mgmt

Generates a package with the following structure:

    /opt/mgmt/bin/python3 -> /opt/mgmt/frameworks/python3.framework/Versions/Current/bin/python3
    /opt/mgmt/frameworks/python3.framework

Scripts are expected to use the shebang ``#!/opt/mgmt/bin/python3``.
Inspired by the MacAdmins Python project, which itself is based on
https://github.com/gregneagle/relocatable-python
"""

from __future__ import annotations

import argparse
import functools
import sys
from pathlib import Path
from typing import Iterator, NoReturn

import fetch
import packager
from pkgtools import (
    PKGBUILD,
    PYTHON_VERSION,
    RELOCATABLE_PYTHON_URL,
    SCUTIL,
    UNZIP,
    BuildContext,
    InvalidProfile,
    PackagingException,
    Task,
    check_tool,
    error,
)
from profiles import PROFILES, resolve_profile, usage
from workspace import Workspace, check_privileges


class PackageDriver:
    def __init__(self, tasks: list[Task], context: BuildContext) -> None:
        self.tasks = tasks
        self.context = context
        self.current_task: Task | None = None
        self.completed_tasks: list[Task] = []
        self.remaining_tasks: Iterator[Task] = iter(tasks)

        print("Build data: ")
        print(f"- Profile: {context.profile.name}")
        print(f"- Python version: {context.python_version}")
        print(f"- Relocatable Python source: {context.source_url}")
        print(f"- Install location: {context.install_location}")
        print(f"- Output folder: {context.output_dir or 'console user Desktop'}")
        print()

    @property
    def completed_task_descriptions(self) -> list[str]:
        return [task.description for task in self.completed_tasks]

    def run(self) -> None:
        self.current_task = next(self.remaining_tasks, None)
        while self.current_task is not None:
            try:
                self.current_task(self.context)
            except Exception:
                print(f"\r💥  {self.current_task.description}")
                if self.context.workspace is not None:
                    print(
                        f"Working space left at {self.context.workspace.root} "
                        "for inspection"
                    )
                raise
            print(f"\r✅  {self.current_task.description}")
            self.completed_tasks.append(self.current_task)
            self.current_task = next(self.remaining_tasks, None)
        if self.context.artifact is not None:
            print()
            print(f"Created {self.context.artifact} 🎉")


def check_root(context: BuildContext) -> None:
    check_privileges()


check_unzip = functools.partial(check_tool, tool=UNZIP)
check_pkgbuild = functools.partial(check_tool, tool=PKGBUILD)
check_scutil = functools.partial(check_tool, tool=SCUTIL)


def resolve_output_dir(context: BuildContext) -> None:
    if context.output_dir is None:
        context.output_dir = packager.default_output_dir()
    if not context.output_dir.is_dir():
        raise PackagingException(f"{context.output_dir} is not a directory")


def prepare_workspace(context: BuildContext) -> None:
    context.workspace = Workspace.create(context.workspace_base)


def download_relocatable_python(context: BuildContext) -> None:
    fetch.download(context.source_url, context.ws.archive)


def extract_relocatable_python(context: BuildContext) -> None:
    fetch.extract(context.ws.archive, context.ws.extract_dir, verbose=context.verbose)


def build_python_framework(context: BuildContext) -> None:
    ws = context.ws
    fetch.write_requirements(context.profile, ws.requirements)
    fetch.build_framework(
        ws.builder,
        context.python_version,
        ws.frameworks,
        ws.requirements,
        verbose=context.verbose,
    )


def prepare_package_root(context: BuildContext) -> None:
    packager.rename_framework(context.ws.frameworks)
    packager.link_python(context.ws.pkg_root, context.install_location)


def change_ownership(context: BuildContext) -> None:
    packager.set_ownership(context.ws.pkg_root)


def create_postinstall(context: BuildContext) -> None:
    packager.write_postinstall(context.ws.scripts, context.install_location)


def create_package(context: BuildContext) -> None:
    if context.output_dir is None:
        raise PackagingException("The output folder has not been located yet")
    output = packager.artifact_path(
        context.output_dir, context.python_version, context.profile.name
    )
    context.artifact = packager.build_package(
        context.ws.pkg_root,
        context.install_location,
        context.ws.scripts,
        output,
        verbose=context.verbose,
    )


def clear_workspace(context: BuildContext) -> None:
    context.ws.remove()
    context.workspace = None


def build_tasks(context: BuildContext) -> list[Task]:
    return [
        Task(check_root, "Checking for elevated access"),
        Task(check_unzip, "Checking unzip is available"),
        Task(check_pkgbuild, "Checking pkgbuild is available"),
        *(
            []
            if context.output_dir is not None
            else [Task(check_scutil, "Checking scutil is available")]
        ),
        Task(resolve_output_dir, "Locating the output folder"),
        Task(prepare_workspace, "Creating temporary working space"),
        Task(download_relocatable_python, "Downloading Relocatable Python"),
        Task(extract_relocatable_python, "Unzipping Relocatable Python"),
        Task(build_python_framework, "Making the relocatable Python framework"),
        Task(prepare_package_root, "Creating package root structure"),
        Task(change_ownership, "Changing ownership to root:wheel"),
        Task(create_postinstall, "Creating postinstall script"),
        Task(create_package, "Creating package"),
        Task(clear_workspace, "Clearing temporary working space"),
    ]


class ArgumentParser(argparse.ArgumentParser):
    """Report bad arguments with the profile help and exit status 1."""

    def error(self, message: str) -> NoReturn:
        print(f"{self.prog}: error: {message}")
        print(usage())
        sys.exit(1)


def get_arg_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(
        description="Build a Relocatable Python installer package.",
        usage="%(prog)s [options] {" + ",".join(PROFILES) + "}",
    )
    parser.add_argument(
        "profile",
        nargs="?",
        help="Set of Python modules to include",
    )
    parser.add_argument(
        "--python-version",
        dest="python_version",
        default=PYTHON_VERSION,
        help="Python version to build (default: %(default)s)",
    )
    parser.add_argument(
        "--url",
        dest="url",
        default=RELOCATABLE_PYTHON_URL,
        help="Location of the relocatable-python zip archive",
    )
    parser.add_argument(
        "--workspace",
        dest="workspace",
        type=Path,
        help=(
            "Working directory to wipe and reuse; an existing directory must be "
            "empty or a previous working space (default: a new temporary directory)"
        ),
    )
    parser.add_argument(
        "--output-dir",
        dest="output_dir",
        type=Path,
        help="Where to write the package (default: the console user's Desktop)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only show the output of external tools when they fail",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = get_arg_parser()
    args = parser.parse_args(argv)

    try:
        profile = resolve_profile(args.profile)
    except InvalidProfile as e:
        if args.profile:
            print(e)
        print(usage())
        sys.exit(1)

    context = BuildContext(
        profile=profile,
        python_version=args.python_version,
        source_url=args.url,
        workspace_base=args.workspace,
        output_dir=args.output_dir,
        verbose=not args.quiet,
    )
    driver = PackageDriver(build_tasks(context), context)
    try:
        driver.run()
    except PackagingException as e:
        error(e)


if __name__ == "__main__":
    main()
