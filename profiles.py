"""Named package sets that can be baked into the Python framework."""

from __future__ import annotations

from dataclasses import dataclass

from pkgtools import InvalidProfile


@dataclass(frozen=True)
class Profile:
    name: str
    packages: tuple[str, ...]

    def requirements(self) -> str:
        return "".join(f"{package}\n" for package in self.packages)


MINIMAL = Profile("minimal", ("pyobjc", "xattr"))

RECOMMENDED = Profile(
    "recommended",
    (
        "arrow",
        "aspy.yaml",
        "atomicwrites",
        "black",
        "boto",
        "entrypoints",
        "flake8",
        "flake8-bugbear",
        "funcsigs",
        "importlib-metadata",
        "isort",
        "packaging",
        "pre-commit",
        "pyobjc",
        "pytest",
        "pytest-docker",
        "python-dotenv",
        "requests",
        "rsa",
        "slacker",
        "Sphinx",
        "tokenize-rt",
        "virtualenv",
        "xattr",
    ),
)

PROFILES = {profile.name: profile for profile in (MINIMAL, RECOMMENDED)}


def _indented(profile: Profile) -> str:
    return "\n".join(f"          {package}" for package in profile.packages)


def usage() -> str:
    return f"""\
Based off the work found at: https://github.com/gregneagle/relocatable-python
This script will create a Relocatable Python installer package with a set list
of modules and output it to your Desktop folder.
The python modules are not tied to a specific version. The original project
included xattr 0.6.4 since it's the version that works in the Recovery environment.
The package that is generated by this script is meant for being run in a
regular macOS installation.
    Available options:
      minimal
        A python framework with the original libraries as intended by the original relocatable python:
{_indented(MINIMAL)}

      recommended
        A python framework with libraries for as many macadmin tools as possible:
{_indented(RECOMMENDED)}

Note: If you want to install a version of Python 3 with only the official
standard libraries, download and install the Xcode Command Line Tools from Apple
which include Python 3. These will get updated whenever Apple releases new
Xcode Command Line Tool updates."""


def resolve_profile(name: str | None) -> Profile:
    if not name:
        raise InvalidProfile("No profile specified.")
    try:
        return PROFILES[name]
    except KeyError:
        raise InvalidProfile(
            f"Unrecognized positional argument specified: {name}"
        ) from None
