import datetime
import os
import stat
from pathlib import Path
from types import SimpleNamespace

import pytest
from pytest_mock import MockerFixture

import packager
from pkgtools import (
    Command,
    CommandResult,
    ConsoleUserError,
    PackageBuildError,
    PrivilegeError,
)

SCUTIL_OUTPUT = """\
<dictionary> {
  GID : 20
  Name : alice
  SessionInfo : <array> {
    0 : <dictionary> {
      kCGSSessionUserNameKey : alice
    }
  }
  UID : 501
}
"""


def test_rename_framework(tmp_path: Path) -> None:
    (tmp_path / "Python.framework" / "Versions").mkdir(parents=True)

    target = packager.rename_framework(tmp_path)

    assert target == tmp_path / "python3.framework"
    assert (target / "Versions").is_dir()
    assert not (tmp_path / "Python.framework").exists()


def test_rename_framework_missing_build(tmp_path: Path) -> None:
    with pytest.raises(PackageBuildError, match="not produced"):
        packager.rename_framework(tmp_path)


def test_rename_framework_collision(tmp_path: Path) -> None:
    (tmp_path / "Python.framework").mkdir()
    (tmp_path / "python3.framework").mkdir()

    with pytest.raises(PackageBuildError, match="already exists"):
        packager.rename_framework(tmp_path)


def test_rename_framework_os_error(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / "Python.framework").mkdir()
    mocker.patch("packager.Path.rename", side_effect=PermissionError("denied"))

    with pytest.raises(PackageBuildError, match="Could not rename"):
        packager.rename_framework(tmp_path)


def test_link_python_existing_link(tmp_path: Path) -> None:
    packager.link_python(tmp_path, "/opt/mgmt")

    with pytest.raises(PackageBuildError, match="Could not create"):
        packager.link_python(tmp_path, "/opt/mgmt")


def test_write_postinstall_missing_scripts_dir(tmp_path: Path) -> None:
    with pytest.raises(PackageBuildError, match="Could not write"):
        packager.write_postinstall(tmp_path / "missing", "/opt/mgmt")


def test_link_python(tmp_path: Path) -> None:
    link = packager.link_python(tmp_path, "/opt/mgmt")

    assert link == tmp_path / "bin" / "python3"
    assert link.is_symlink()
    assert os.readlink(link) == (
        "/opt/mgmt/frameworks/python3.framework/Versions/Current/bin/python3"
    )


def test_set_ownership(tmp_path: Path, mocker: MockerFixture) -> None:
    # Arrange
    (tmp_path / "frameworks" / "python3.framework").mkdir(parents=True)
    (tmp_path / "frameworks" / "python3.framework" / "Info.plist").touch()
    mocker.patch("packager.pwd.getpwnam", return_value=SimpleNamespace(pw_uid=0))
    mocker.patch("packager.grp.getgrnam", return_value=SimpleNamespace(gr_gid=0))
    mock_chown = mocker.patch("packager.os.chown")

    # Act
    packager.set_ownership(tmp_path)

    # Assert
    changed = {call.args[0] for call in mock_chown.call_args_list}
    assert changed == {
        tmp_path,
        str(tmp_path / "frameworks"),
        str(tmp_path / "frameworks" / "python3.framework"),
        str(tmp_path / "frameworks" / "python3.framework" / "Info.plist"),
    }
    for call in mock_chown.call_args_list:
        assert call.args[1:] == (0, 0)
        assert call.kwargs == {"follow_symlinks": False}


def test_set_ownership_not_permitted(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch("packager.pwd.getpwnam", return_value=SimpleNamespace(pw_uid=0))
    mocker.patch("packager.grp.getgrnam", return_value=SimpleNamespace(gr_gid=0))
    mocker.patch("packager.os.chown", side_effect=PermissionError("not permitted"))

    with pytest.raises(PrivilegeError):
        packager.set_ownership(tmp_path)


def test_set_ownership_unknown_group(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch("packager.grp.getgrnam", side_effect=KeyError("wheel"))

    with pytest.raises(PrivilegeError, match="root:wheel"):
        packager.set_ownership(tmp_path)


def test_write_postinstall(tmp_path: Path) -> None:
    postinstall = packager.write_postinstall(tmp_path, "/opt/mgmt")

    assert postinstall == tmp_path / "postinstall"
    assert postinstall.read_text().splitlines() == [
        "#!/bin/zsh",
        "[ -d /opt ] && /usr/bin/chflags hidden /opt",
        "/usr/bin/chflags hidden /opt/mgmt",
    ]
    mode = postinstall.stat().st_mode
    assert mode & stat.S_IXUSR
    assert mode & stat.S_IXGRP
    assert mode & stat.S_IXOTH


@pytest.mark.parametrize(
    ["profile", "expected"],
    [
        ("minimal", "MacAdmins-Python-3.8.3-minimal-20200615093005.pkg"),
        ("recommended", "MacAdmins-Python-3.8.3-recommended-20200615093005.pkg"),
    ],
)
def test_artifact_path(profile: str, expected: str) -> None:
    now = datetime.datetime(2020, 6, 15, 9, 30, 5)

    path = packager.artifact_path(Path("/Users/alice/Desktop"), "3.8.3", profile, now)

    assert path == Path("/Users/alice/Desktop") / expected


@pytest.mark.parametrize(
    ["output", "expected"],
    [
        (SCUTIL_OUTPUT, "alice"),
        (SCUTIL_OUTPUT.replace("alice", "loginwindow"), None),
        ("<dictionary> {\n  Name : \n}\n", None),
        ("  No such key\n", None),
    ],
)
def test_console_user(output: str, expected: str | None, mocker: MockerFixture) -> None:
    mock_run = mocker.patch(
        "packager.run_command",
        side_effect=lambda command, **kwargs: CommandResult(command, 0, output),
    )

    assert packager.console_user() == expected
    mock_run.assert_called_once_with(
        Command(["/usr/sbin/scutil"], input="show State:/Users/ConsoleUser\n"),
        verbose=False,
    )


def test_default_output_dir(mocker: MockerFixture) -> None:
    mocker.patch("packager.console_user", return_value="alice")

    assert packager.default_output_dir() == Path("/Users/alice/Desktop")


def test_default_output_dir_without_console_user(mocker: MockerFixture) -> None:
    mocker.patch("packager.console_user", return_value=None)

    with pytest.raises(ConsoleUserError):
        packager.default_output_dir()


def test_build_package(tmp_path: Path, mocker: MockerFixture) -> None:
    # Arrange
    mock_run = mocker.patch("packager.run_command")
    output = tmp_path / "MacAdmins-Python-3.8.3-minimal-20200615093005.pkg"

    # Act
    result = packager.build_package(
        tmp_path / "pkgRoot", "/opt/mgmt", tmp_path / "scripts", output, verbose=False
    )

    # Assert
    assert result == output
    mock_run.assert_called_once_with(
        Command(
            [
                "/usr/bin/pkgbuild",
                "--root",
                str(tmp_path / "pkgRoot"),
                "--install-location",
                "/opt/mgmt",
                "--scripts",
                str(tmp_path / "scripts"),
                str(output),
            ],
            error=PackageBuildError,
        ),
        verbose=False,
    )
