"""The scratch directory tree a single build runs in.

Layout of a workspace::

    <root>/reloPython.zip                      downloaded archive
    <root>/relocatable-python-master/          unpacked builder
    <root>/reqs.txt                            pip requirements for the builder
    <root>/pkgRoot/{bin,frameworks}            becomes /opt/mgmt on install
    <root>/scripts/postinstall

A workspace is only removed after a build succeeds. When anything fails
it is left behind for inspection and the caller is responsible for
removing it.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from pkgtools import REPO_NAME, PrivilegeError, WorkspaceError

BUILDER_SCRIPT = "make_relocatable_python_framework.py"


def check_privileges() -> None:
    if os.geteuid() != 0:
        raise PrivilegeError("This tool requires elevated access to run.")


@dataclass(frozen=True)
class Workspace:
    root: Path

    @property
    def archive(self) -> Path:
        return self.root / "reloPython.zip"

    @property
    def extract_dir(self) -> Path:
        return self.root

    @property
    def builder(self) -> Path:
        return self.extract_dir / f"{REPO_NAME}-master" / BUILDER_SCRIPT

    @property
    def requirements(self) -> Path:
        return self.root / "reqs.txt"

    @property
    def pkg_root(self) -> Path:
        return self.root / "pkgRoot"

    @property
    def frameworks(self) -> Path:
        return self.pkg_root / "frameworks"

    @property
    def scripts(self) -> Path:
        return self.root / "scripts"

    @staticmethod
    def _is_reusable(root: Path) -> bool:
        if not any(root.iterdir()):
            return True
        return (root / "pkgRoot").is_dir() or (root / "scripts").is_dir()

    @classmethod
    def create(cls, base: Path | None = None) -> Workspace:
        try:
            if base is None:
                root = Path(tempfile.mkdtemp(prefix="RP-"))
            else:
                root = Path(base)
                if root.is_dir() and not cls._is_reusable(root):
                    raise WorkspaceError(
                        f"Refusing to clear {root}: it is not empty and is not "
                        "a previous working space"
                    )
                if root.exists():
                    print(f"Clearing working space {root}")
                    shutil.rmtree(root)
                root.mkdir(parents=True)
            workspace = cls(root)
            for directory in (
                workspace.pkg_root / "bin",
                workspace.frameworks,
                workspace.scripts,
            ):
                directory.mkdir(parents=True)
        except OSError as e:
            raise WorkspaceError(f"Could not prepare working space: {e}") from e
        print(f"Created temporary working space at {root}")
        return workspace

    def remove(self) -> None:
        try:
            shutil.rmtree(self.root)
        except OSError as e:
            raise WorkspaceError(f"Could not remove {self.root}: {e}") from e
