from unittest.mock import MagicMock

import paramiko
import pytest

from clusterup.errors import RemoteError
from clusterup.remote import RemoteSession


def make_client(status=0, out=b"", err=b""):
    client = MagicMock(spec=paramiko.SSHClient)
    stdout = MagicMock()
    stdout.read.return_value = out
    stdout.channel.recv_exit_status.return_value = status
    stderr = MagicMock()
    stderr.read.return_value = err
    client.exec_command.return_value = (MagicMock(), stdout, stderr)
    return client


def test_execute_returns_status_and_output():
    client = make_client(out=b"ok\n")
    with RemoteSession("10.0.0.2", "ubuntu", client_factory=lambda: client) as session:
        assert session.execute("uptime") == (0, "ok\n", "")
    client.connect.assert_called_once()
    assert client.connect.call_args.kwargs["hostname"] == "10.0.0.2"
    assert client.connect.call_args.kwargs["key_filename"] is None
    client.close.assert_called_once()


def test_check_raises_on_failure():
    client = make_client(status=1, err=b"[preflight] error\n")
    with RemoteSession("10.0.0.2", "ubuntu", client_factory=lambda: client) as session:
        with pytest.raises(RemoteError, match="preflight"):
            session.check("sudo -n bash /tmp/join.sh")


def test_connection_failure_is_remote_error():
    client = make_client()
    client.connect.side_effect = paramiko.AuthenticationException("denied")
    with pytest.raises(RemoteError, match="10.0.0.3"):
        RemoteSession("10.0.0.3", "ubuntu", client_factory=lambda: client).connect()
    client.close.assert_called_once()


def test_put_sets_mode(tmp_path):
    key = tmp_path / "id_rsa"
    key.write_text("key")
    client = make_client()
    sftp = client.open_sftp.return_value
    with RemoteSession("10.0.0.2", "ubuntu", key_path=str(key), client_factory=lambda: client) as session:
        session.put("/tmp/join.sh", "/tmp/remote.sh", mode=0o755)
    assert client.connect.call_args.kwargs["key_filename"] == str(key)
    sftp.put.assert_called_once_with("/tmp/join.sh", "/tmp/remote.sh")
    sftp.chmod.assert_called_once_with("/tmp/remote.sh", 0o755)
    sftp.close.assert_called_once()
