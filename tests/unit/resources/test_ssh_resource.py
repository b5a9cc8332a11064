"""Unit tests for SSH Resource (paramiko mocked)."""

from unittest.mock import MagicMock, Mock, patch

import paramiko
import pytest

from libs.models import Credential
from services.dagster.deploy_pipelines.resources import SSHResource
from services.dagster.deploy_pipelines.resources.ssh_resource import (
    SSHCommandError,
    SSHConnectionError,
    SSHSession,
)


def _channel_streams(stdout=b"", stderr=b"", exit_status=0):
    stdin = MagicMock()
    out = MagicMock()
    out.read.return_value = stdout
    out.channel.recv_exit_status.return_value = exit_status
    err = MagicMock()
    err.read.return_value = stderr
    return stdin, out, err


@pytest.fixture
def mock_client():
    return MagicMock(spec=paramiko.SSHClient)


@pytest.fixture
def session(mock_client):
    return SSHSession(mock_client, "203.0.113.10")


class TestSSHSessionCommands:
    def test_run_collects_output(self, session, mock_client):
        mock_client.exec_command.return_value = _channel_streams(b"hello\n", b"", 0)
        result = session.run("echo hello")

        assert result.success is True
        assert result.stdout == "hello\n"
        mock_client.exec_command.assert_called_once_with("echo hello", timeout=None)

    def test_run_returns_non_zero_exit(self, session, mock_client):
        mock_client.exec_command.return_value = _channel_streams(b"", b"boom", 2)
        result = session.run("false")
        assert result.success is False
        assert result.exit_status == 2

    def test_check_raises_on_failure(self, session, mock_client):
        mock_client.exec_command.return_value = _channel_streams(b"", b"denied", 1)
        with pytest.raises(SSHCommandError, match="denied"):
            session.check("mkdir /root/x")

    def test_run_script_feeds_stdin(self, session, mock_client):
        streams = _channel_streams(b"ok", b"", 0)
        mock_client.exec_command.return_value = streams
        session.run_script("set -e\necho ok\n")

        mock_client.exec_command.assert_called_once_with("bash -s", timeout=None)
        streams[0].write.assert_called_once_with("set -e\necho ok\n")
        streams[0].channel.shutdown_write.assert_called_once()

    def test_ensure_dir_quotes_path(self, session, mock_client):
        mock_client.exec_command.return_value = _channel_streams()
        session.ensure_dir("/srv/my app")
        mock_client.exec_command.assert_called_once_with(
            "mkdir -p '/srv/my app'", timeout=None
        )

    def test_is_process_alive(self, session, mock_client):
        mock_client.exec_command.return_value = _channel_streams(exit_status=1)
        assert session.is_process_alive(4242) is False
        mock_client.exec_command.assert_called_once_with("kill -0 4242", timeout=None)

    def test_read_tail(self, session, mock_client):
        mock_client.exec_command.return_value = _channel_streams(stdout=b"line 1\nline 2\n")
        assert session.read_tail("/srv/my app/app.log", 2) == "line 1\nline 2\n"
        mock_client.exec_command.assert_called_once_with(
            "tail -n 2 '/srv/my app/app.log'", timeout=None
        )

    def test_read_tail_missing_file(self, session, mock_client):
        mock_client.exec_command.return_value = _channel_streams(exit_status=1)
        assert session.read_tail("/srv/app/app.log") == ""


class TestSSHSessionTransfer:
    def test_put_single_file(self, session, mock_client, tmp_path):
        local = tmp_path / "app.py"
        local.write_text("print('hi')\n")
        sftp = mock_client.open_sftp.return_value

        uploaded = session.put_path(local, "/srv/app/app.py")

        sftp.put.assert_called_once_with(str(local), "/srv/app/app.py")
        assert uploaded == ["/srv/app/app.py"]

    def test_put_directory_recursively(self, session, mock_client, tmp_path):
        local = tmp_path / "tests"
        (local / "unit").mkdir(parents=True)
        (local / "test_a.py").write_text("")
        (local / "unit" / "test_b.py").write_text("")
        sftp = mock_client.open_sftp.return_value
        sftp.stat.side_effect = FileNotFoundError()

        uploaded = session.put_path(local, "/srv/app/tests")

        assert uploaded == ["/srv/app/tests/test_a.py", "/srv/app/tests/unit/test_b.py"]
        sftp.mkdir.assert_any_call("/srv/app/tests")
        sftp.mkdir.assert_any_call("/srv/app/tests/unit")

    def test_existing_remote_directory_reused(self, session, mock_client, tmp_path):
        local = tmp_path / "tests"
        local.mkdir()
        (local / "test_a.py").write_text("")
        sftp = mock_client.open_sftp.return_value
        sftp.stat.return_value = Mock(st_mode=0o040755)

        session.put_path(local, "/srv/app/tests")

        sftp.mkdir.assert_not_called()

    def test_close_closes_sftp(self, session, mock_client, tmp_path):
        local = tmp_path / "app.py"
        local.write_text("")
        session.put_path(local, "/srv/app/app.py")
        session.close()
        mock_client.open_sftp.return_value.close.assert_called_once()


class TestSSHResourceSession:
    @pytest.fixture
    def credential(self):
        return Credential(
            credential_id="deploy-server-key",
            private_key_path="/keys/id_ed25519",
            passphrase="pass",
        )

    def test_connects_with_key_and_closes(self, credential):
        resource = SSHResource(connect_timeout=5)
        with patch("paramiko.SSHClient") as client_cls:
            client = client_cls.return_value
            with resource.session("203.0.113.10", "ubuntu", credential) as remote:
                assert remote.host == "203.0.113.10"

        kwargs = client.connect.call_args.kwargs
        assert kwargs["hostname"] == "203.0.113.10"
        assert kwargs["username"] == "ubuntu"
        assert kwargs["key_filename"] == "/keys/id_ed25519"
        assert kwargs["passphrase"] == "pass"
        assert kwargs["timeout"] == 5
        assert kwargs["allow_agent"] is False
        client.close.assert_called_once()

    def test_credential_username_overrides_target_user(self):
        credential = Credential(credential_id="pw", password="secret", username="deployer")
        resource = SSHResource()
        with patch("paramiko.SSHClient") as client_cls:
            with resource.session("host", "ubuntu", credential, port=2222):
                pass

        kwargs = client_cls.return_value.connect.call_args.kwargs
        assert kwargs["username"] == "deployer"
        assert kwargs["password"] == "secret"
        assert kwargs["port"] == 2222

    def test_strict_host_key_checking_uses_reject_policy(self, credential):
        resource = SSHResource(strict_host_key_checking=True)
        with patch("paramiko.SSHClient") as client_cls:
            with resource.session("host", "ubuntu", credential):
                pass

        policy = client_cls.return_value.set_missing_host_key_policy.call_args[0][0]
        assert isinstance(policy, paramiko.RejectPolicy)

    def test_auth_failure_maps_to_connection_error(self, credential):
        resource = SSHResource()
        with patch("paramiko.SSHClient") as client_cls:
            client_cls.return_value.connect.side_effect = paramiko.AuthenticationException("nope")
            with pytest.raises(SSHConnectionError, match="authentication"):
                with resource.session("host", "ubuntu", credential):
                    pass

        client_cls.return_value.close.assert_called_once()

    def test_unreachable_host_maps_to_connection_error(self, credential):
        resource = SSHResource()
        with patch("paramiko.SSHClient") as client_cls:
            client_cls.return_value.connect.side_effect = OSError("No route to host")
            with pytest.raises(SSHConnectionError, match="cannot reach"):
                with resource.session("host", "ubuntu", credential):
                    pass
