"""Download relocatable-python and use it to build a Python framework."""

from __future__ import annotations

from pathlib import Path

import requests
from alive_progress import alive_bar  # type: ignore[import-untyped]

from pkgtools import (
    UNZIP,
    BuildError,
    Command,
    ExtractError,
    FetchError,
    run_command,
)
from profiles import Profile

CHUNK_SIZE = 10240


def download(url: str, destination: Path) -> None:
    print(f"Downloading Relocatable Python script from {url}")
    try:
        with requests.get(url, stream=True) as resp:
            resp.raise_for_status()
            length = resp.headers.get("Content-Length")
            total = int(length) if length and length.isdigit() else None
            with open(destination, "wb") as fp, alive_bar(
                total, title=destination.name
            ) as progress:
                for block in resp.iter_content(chunk_size=CHUNK_SIZE):
                    fp.write(block)
                    progress(len(block))
    except requests.RequestException as e:
        raise FetchError(
            f"Relocatable Python zip could not be downloaded from {url}: {e}"
        ) from e
    except OSError as e:
        raise FetchError(f"Could not write {destination}: {e}") from e


def extract(archive: Path, destination: Path, *, verbose: bool = True) -> None:
    run_command(
        Command([UNZIP, str(archive), "-d", str(destination)], error=ExtractError),
        verbose=verbose,
    )


def write_requirements(profile: Profile, path: Path) -> None:
    try:
        path.write_text(profile.requirements())
    except OSError as e:
        raise BuildError(f"Could not write {path}: {e}") from e


def build_framework(
    builder: Path,
    python_version: str,
    destination: Path,
    requirements: Path,
    *,
    verbose: bool = True,
) -> None:
    if not builder.is_file():
        raise ExtractError(f"{builder} was not found in the downloaded archive")
    run_command(
        Command(
            [
                str(builder),
                "--python-version",
                python_version,
                "--destination",
                str(destination),
                f"--pip-requirements={requirements}",
            ],
            error=BuildError,
        ),
        verbose=verbose,
    )
