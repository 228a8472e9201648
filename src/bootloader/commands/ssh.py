"""SSH into the jumpbox, or through it into the director."""

import os
import shutil
import socket
import subprocess
import tempfile
from pathlib import Path
from typing import List
from urllib.parse import urlparse

from bootloader.state.models import State
from bootloader.utils.errors import BootloaderError, ValidationError
from bootloader.utils.logging import get_logger

logger = get_logger(__name__)

SSH_USER = "jumpbox"


class SSHError(BootloaderError):
    """A step of opening an SSH session failed."""


class SSHCmd:
    """Runs the ssh binary attached to the current terminal."""

    def __init__(self, binary: str = "ssh"):
        self.binary = binary

    def run(self, args: List[str]) -> None:
        subprocess.run([self.binary, *args], check=True)


class SSHKeyGetter:
    """Reads private keys out of the state record."""

    def jumpbox_key(self, state: State) -> str:
        if not state.jumpbox.ssh_private_key:
            raise BootloaderError("jumpbox private key missing from state")
        return state.jumpbox.ssh_private_key

    def director_key(self, state: State) -> str:
        if not state.director.ssh_private_key:
            raise BootloaderError("director private key missing from state")
        return state.director.ssh_private_key


class FileIO:
    """Filesystem operations for staging key files."""

    def temp_dir(self, prefix: str) -> str:
        return tempfile.mkdtemp(prefix=prefix)

    def write_file(self, path: str, contents: bytes, mode: int) -> None:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(contents)

    def remove_all(self, path: str) -> None:
        shutil.rmtree(path, ignore_errors=True)


class RandomPort:
    """Finds a free local TCP port for the SOCKS proxy."""

    def get_port(self) -> str:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            return str(sock.getsockname()[1])


def _host(address: str) -> str:
    """Extract the host from 'host:port' or 'https://host:port'."""
    if "://" not in address:
        address = f"//{address}"
    return urlparse(address).hostname or ""


class SSH:
    """Opens interactive SSH sessions to environment VMs."""

    def __init__(
        self,
        ssh_cmd: SSHCmd,
        key_getter: SSHKeyGetter,
        file_io: FileIO,
        random_port: RandomPort
    ):
        self.ssh_cmd = ssh_cmd
        self.key_getter = key_getter
        self.file_io = file_io
        self.random_port = random_port

    def check_fast_fails(self, state: State) -> None:
        """Raises ValidationError when the state has no jumpbox."""
        if not state.jumpbox.url:
            raise ValidationError("Invalid state for ssh.")

    def execute(self, state: State, director: bool = False, jumpbox: bool = False) -> None:
        """Open an SSH session to the director (through a jumpbox tunnel) or the jumpbox.

        Raises:
            SSHError: If any step fails, prefixed with the step that failed
        """
        if not (director or jumpbox):
            raise ValidationError("This command requires the --jumpbox or --director flag.")

        try:
            temp_dir = self.file_io.temp_dir("bootloader-ssh-")
        except OSError as e:
            raise SSHError(f"Create temp directory: {e}", cause=e)

        try:
            self._open(state, temp_dir, jumpbox=jumpbox)
        finally:
            self.file_io.remove_all(temp_dir)

    def _open(self, state: State, temp_dir: str, jumpbox: bool) -> None:
        jumpbox_key_path = self._stage_key(
            "Get jumpbox private key", self.key_getter.jumpbox_key, state, temp_dir, "jumpbox-private-key"
        )
        jumpbox_host = _host(state.jumpbox.url)

        if jumpbox:
            logger.info(f"Opening ssh session to jumpbox {jumpbox_host}")
            self._run(
                "Open ssh session to jumpbox",
                [
                    "-o", "StrictHostKeyChecking=no",
                    "-o", "ServerAliveInterval=300",
                    f"{SSH_USER}@{jumpbox_host}",
                    "-i", jumpbox_key_path,
                ],
            )
            return

        director_key_path = self._stage_key(
            "Get director private key", self.key_getter.director_key, state, temp_dir, "director-private-key"
        )

        try:
            port = self.random_port.get_port()
        except OSError as e:
            raise SSHError(f"Open proxy port: {e}", cause=e)

        logger.info(f"Opening tunnel through jumpbox {jumpbox_host} on localhost:{port}")
        self._run(
            "Open tunnel to jumpbox",
            ["-4", "-D", port, "-fNC", f"{SSH_USER}@{jumpbox_host}", "-i", jumpbox_key_path],
        )

        director_host = _host(state.director.address)
        logger.info(f"Opening ssh session to director {director_host}")
        self._run(
            "Open ssh session to director",
            [
                "-o", f"ProxyCommand=nc -x localhost:{port} %h %p",
                "-i", director_key_path,
                f"{SSH_USER}@{director_host}",
            ],
        )

    def _stage_key(self, action: str, getter, state: State, temp_dir: str, name: str) -> str:
        try:
            key = getter(state)
        except BootloaderError as e:
            raise SSHError(f"{action}: {e}", cause=e)

        path = str(Path(temp_dir) / name)
        try:
            self.file_io.write_file(path, key.encode("utf-8"), 0o600)
        except OSError as e:
            raise SSHError(f"Write private key file: {e}", cause=e)
        return path

    def _run(self, action: str, args: List[str]) -> None:
        try:
            self.ssh_cmd.run(args)
        except (subprocess.CalledProcessError, OSError) as e:
            raise SSHError(f"{action}: {e}", cause=e)
