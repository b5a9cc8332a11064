# =============================================================================
# SSH Resource - Authenticated remote transport
# =============================================================================
# Provides remote command execution and SFTP file copy over paramiko.
# Credentials are passed in per session; the resource holds none.
# =============================================================================

from contextlib import contextmanager
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import posixpath
import shlex
import stat
from typing import Iterator, Optional

from dagster import ConfigurableResource
import paramiko
from pydantic import Field

from libs.models import Credential
from libs.remote_scripts import process_alive_command, tail_command

__all__ = [
    "SSHResource",
    "SSHSession",
    "CommandResult",
    "SSHConnectionError",
    "SSHCommandError",
]

logger = logging.getLogger(__name__)


class SSHConnectionError(RuntimeError):
    """The host is unreachable or authentication was rejected."""


class SSHCommandError(RuntimeError):
    """A remote command exited non-zero."""

    def __init__(self, message: str, result: "CommandResult"):
        super().__init__(message)
        self.result = result


@dataclass
class CommandResult:
    """
    Serializable result of one remote command.
    """
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def success(self) -> bool:
        return self.exit_status == 0


class SSHSession:
    """
    One authenticated connection to a host.

    Created by SSHResource.session(); not meant to be built directly.
    """

    def __init__(
        self,
        client: paramiko.SSHClient,
        host: str,
        command_timeout: Optional[float] = None,
    ):
        self._client = client
        self.host = host
        self._command_timeout = command_timeout
        self._sftp: Optional[paramiko.SFTPClient] = None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def run(self, command: str, stdin: Optional[str] = None) -> CommandResult:
        """
        Run a command and wait for it to exit.

        Args:
            command: Command line executed by the remote user's shell
            stdin: Optional text written to the command's stdin, then closed

        Returns:
            CommandResult (non-zero exits are returned, not raised)
        """
        logger.debug("[%s] $ %s", self.host, command)
        chan_stdin, chan_stdout, chan_stderr = self._client.exec_command(
            command, timeout=self._command_timeout
        )
        if stdin is not None:
            chan_stdin.write(stdin)
            chan_stdin.flush()
            chan_stdin.channel.shutdown_write()

        stdout = chan_stdout.read().decode("utf-8", errors="replace")
        stderr = chan_stderr.read().decode("utf-8", errors="replace")
        exit_status = chan_stdout.channel.recv_exit_status()

        return CommandResult(
            command=command,
            stdout=stdout,
            stderr=stderr,
            exit_status=exit_status,
        )

    def check(self, command: str, stdin: Optional[str] = None) -> CommandResult:
        """Run a command and raise SSHCommandError on a non-zero exit."""
        result = self.run(command, stdin=stdin)
        if not result.success:
            raise SSHCommandError(
                f"[{self.host}] command {command!r} exited {result.exit_status}: "
                f"{result.stderr.strip()}",
                result,
            )
        return result

    def run_script(self, script: str) -> CommandResult:
        """Feed a script to `bash -s` in a single remote shell."""
        return self.run("bash -s", stdin=script)

    def ensure_dir(self, path: str) -> None:
        """Create the directory and its parents; no-op if it already exists."""
        self.check(f"mkdir -p {shlex.quote(path)}")

    def is_process_alive(self, pid: int) -> bool:
        return self.run(process_alive_command(pid)).success

    def read_tail(self, path: str, lines: int = 50) -> str:
        result = self.run(tail_command(path, lines))
        return result.stdout if result.success else ""

    # ------------------------------------------------------------------
    # File transfer
    # ------------------------------------------------------------------

    def _get_sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            self._sftp = self._client.open_sftp()
        return self._sftp

    def _sftp_mkdir(self, sftp: paramiko.SFTPClient, remote_dir: str) -> None:
        try:
            attrs = sftp.stat(remote_dir)
        except FileNotFoundError:
            sftp.mkdir(remote_dir)
            return
        if not stat.S_ISDIR(attrs.st_mode or 0):
            raise SSHCommandError(
                f"[{self.host}] {remote_dir} exists and is not a directory",
                CommandResult(command=f"mkdir {remote_dir}", stdout="", stderr="", exit_status=1),
            )

    def put_path(self, local: Path, remote: str) -> list[str]:
        """
        Copy a local file or directory tree to `remote`, overwriting files
        with the same name.

        Returns:
            Remote paths of every file written, in upload order
        """
        sftp = self._get_sftp()
        uploaded: list[str] = []

        if local.is_dir():
            self._sftp_mkdir(sftp, remote)
            for dirpath, dirnames, filenames in os.walk(local):
                dirnames.sort()
                rel = os.path.relpath(dirpath, local)
                remote_dir = remote if rel == "." else posixpath.join(
                    remote, *Path(rel).parts
                )
                if rel != ".":
                    self._sftp_mkdir(sftp, remote_dir)
                for name in sorted(filenames):
                    remote_file = posixpath.join(remote_dir, name)
                    sftp.put(os.path.join(dirpath, name), remote_file)
                    uploaded.append(remote_file)
        else:
            sftp.put(str(local), remote)
            uploaded.append(remote)

        logger.debug("[%s] uploaded %d file(s) to %s", self.host, len(uploaded), remote)
        return uploaded

    def close(self) -> None:
        if self._sftp is not None:
            self._sftp.close()
            self._sftp = None


class SSHResource(ConfigurableResource):
    """
    Dagster resource for the remote transport.

    Configuration:
        connect_timeout: TCP/banner/auth timeout in seconds (default: 10)
        command_timeout: Channel timeout for remote commands, 0 disables
        known_hosts_file: Extra known_hosts file loaded after the system one
        strict_host_key_checking: Reject unknown host keys instead of adding them

    Example:
        >>> ssh = SSHResource()
        >>> with ssh.session("203.0.113.10", "ubuntu", credential) as remote:
        ...     remote.ensure_dir("/home/ubuntu/app")
    """

    connect_timeout: float = Field(10.0, description="Connect/auth timeout in seconds")
    command_timeout: float = Field(
        0,
        description="Per-command channel timeout in seconds (0 disables)",
    )
    known_hosts_file: str = Field("", description="Additional known_hosts file")
    strict_host_key_checking: bool = Field(
        False,
        description="Reject hosts whose key is not already known",
    )

    def _build_client(self) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if self.known_hosts_file:
            client.load_host_keys(os.path.expanduser(self.known_hosts_file))
        if self.strict_host_key_checking:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        return client

    def _connect_kwargs(
        self, host: str, user: str, credential: Credential, port: int
    ) -> dict:
        kwargs: dict = {
            "hostname": host,
            "port": port,
            "username": credential.username or user,
            "timeout": self.connect_timeout,
            "banner_timeout": self.connect_timeout,
            "auth_timeout": self.connect_timeout,
            "allow_agent": False,
            "look_for_keys": False,
        }
        if credential.private_key_path:
            kwargs["key_filename"] = os.path.expanduser(credential.private_key_path)
            if credential.passphrase is not None:
                kwargs["passphrase"] = credential.passphrase.get_secret_value()
        if credential.password is not None:
            kwargs["password"] = credential.password.get_secret_value()
        return kwargs

    @contextmanager
    def session(
        self,
        host: str,
        user: str,
        credential: Credential,
        port: int = 22,
    ) -> Iterator[SSHSession]:
        """
        Open an authenticated session, closed when the block exits.

        Raises:
            SSHConnectionError: Host unreachable, handshake or auth failure
        """
        client = self._build_client()
        kwargs = self._connect_kwargs(host, user, credential, port)
        logger.info(
            "Connecting to %s@%s:%s using credential %s",
            kwargs["username"],
            host,
            port,
            credential.credential_id,
        )
        try:
            client.connect(**kwargs)
        except paramiko.AuthenticationException as e:
            client.close()
            raise SSHConnectionError(
                f"authentication to {kwargs['username']}@{host}:{port} failed: {e}"
            ) from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise SSHConnectionError(f"cannot reach {host}:{port}: {e}") from e

        session = SSHSession(client, host, self.command_timeout or None)
        try:
            yield session
        finally:
            session.close()
            client.close()
