"""Shell and Command template tests.

Test coverage:
- Program resolution through the shell's search path
- bake() and with_options() immutability
- Calling templates
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from shellrun import Shell, __version__
from shellrun.config import Config
from shellrun.errors import CommandNotFound, InvalidArgument
from shellrun.runtime.termination import IS_WINDOWS

pytestmark = pytest.mark.skipif(IS_WINDOWS, reason="POSIX commands")


class TestShell:
    """Test search path handling."""

    def test_command_resolved(self, shell: Shell):
        command = shell.command("echo")
        assert os.path.isabs(command.progpath)
        assert command.prog == "echo"

    def test_cmd_alias(self, shell: Shell):
        assert shell.cmd("echo").progpath == shell.command("echo").progpath

    def test_missing_command(self, shell: Shell):
        with pytest.raises(CommandNotFound, match="no command `shellrun-missing-program'"):
            shell.command("shellrun-missing-program")

    def test_path_setter(self, shell: Shell, tmp_path: Path):
        program = tmp_path / "hello"
        program.write_text("#!/bin/sh\necho hello from tool\n")
        program.chmod(0o755)

        shell.path = str(tmp_path)
        assert shell.path == [str(tmp_path)]
        assert shell.command("hello").progpath == str(program)

        shell.path = ["/nonexistent", tmp_path]
        assert shell.command("hello")().stdout_data == b"hello from tool\n"

    def test_config_is_copied(self, config: Config):
        shell = Shell(config)
        shell.path = ["/nowhere"]
        assert config.path != ["/nowhere"]

    def test_absolute_program(self, shell: Shell):
        command = shell.command(sys.executable)
        assert command.progpath == sys.executable

    def test_version(self):
        assert __version__


class TestCommand:
    """Test command templates."""

    def test_bake(self, shell: Shell):
        git_log = shell.command("echo").bake("log", oneline=True)
        rc = git_log("-n", 3)
        assert rc.stdout_data == b"log --oneline -n 3\n"

    def test_bake_is_immutable(self, shell: Shell):
        echo = shell.command("echo")
        baked = echo.bake("a")
        assert echo.args == ()
        assert baked.prepare().argv[1:] == ["a"]
        assert baked.bake("b").prepare().argv[1:] == ["a", "b"]
        assert baked.prepare().argv[1:] == ["a"]

    def test_bake_replaces_option(self, shell: Shell):
        echo = shell.command("echo").bake(depth=1)
        assert echo.prepare(depth=2).argv[1:] == ["--depth=2"]

    def test_with_options(self, shell: Shell):
        echo = shell.command("cat")
        fed = echo.with_options(stdin_bytes="abc")
        assert echo.options.stdin_bytes is None
        assert fed().stdout_data == b"abc"

    def test_with_unknown_option(self, shell: Shell):
        with pytest.raises(InvalidArgument):
            shell.command("echo").with_options(colour=True)

    def test_long_separator_option(self, shell: Shell):
        echo = shell.command("echo").with_options(long_sep=None)
        assert echo.prepare(depth=1).argv[1:] == ["--depth", "1"]

    def test_long_prefix_option(self, shell: Shell):
        echo = shell.command("echo").with_options(long_prefix="-")
        assert echo.prepare(name="x").argv[1:] == ["-name=x"]

    def test_call_alias(self, shell: Shell):
        assert shell.command("echo").call("hi").stdout_data == b"hi\n"

    def test_prepare_does_not_spawn(self, shell: Shell):
        rc = shell.command("echo").prepare("x")
        assert not rc.spawned
        assert rc.pid is None

    def test_repr(self, shell: Shell):
        command = shell.command("echo")
        assert command.progpath in repr(command)
