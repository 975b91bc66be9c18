import json
import unittest
from unittest import mock

import paramiko

from burrow.errors import (
    CouldNotUnlinkKeyError,
    LinkKeyError,
    ProtocolError,
    RemoteCommandError,
    SSHAuthenticationError,
    SSHConnectionError,
)
from burrow.models import KeySet, PublicKeyRecord
from burrow.ssh import commands
from burrow.ssh.auth import AuthConfig
from burrow.ssh.commands import Operation, RemoteCommand, ResponseMode
from burrow.ssh.session import SSHSession, SSHTransport

from fakes import ClientRecorder, FakeChannel, FakeSSHClient

KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIG9vZm9vZm9vZm9vZm9vZm9vZm9vZm9vZm9vZm9vZm9v"


def _auth() -> AuthConfig:
    return AuthConfig(methods=[mock.Mock(name="method")], username="burrow")


class WindowedChannel(FakeChannel):
    """Withholds stdout until stderr has been read, like a full stderr window."""

    window = 4

    def recv_ready(self) -> bool:
        return not self.recv_stderr_ready() and super().recv_ready()

    def recv(self, size: int) -> bytes:
        if self.recv_stderr_ready():
            raise AssertionError("stdout read while stderr is still pending")
        return super().recv(size)

    def recv_stderr(self, size: int) -> bytes:
        return super().recv_stderr(min(size, self.window))


class WindowedSSHClient(FakeSSHClient):
    channel_class = WindowedChannel


class SSHSessionTests(unittest.TestCase):
    def test_run_command_uses_client_factory(self) -> None:
        recorder = ClientRecorder()
        session = SSHSession("example.test", 35353, _auth(), client_factory=recorder)
        with session:
            result = session.run("id")

        self.assertTrue(result.ok)
        self.assertEqual(result.stdout, b"ok")
        client = recorder.clients[0]
        self.assertTrue(client.closed)
        self.assertIsInstance(client.policy, paramiko.AutoAddPolicy)
        self.assertEqual(client.connect_kwargs["hostname"], "example.test")
        self.assertEqual(client.connect_kwargs["port"], 35353)
        self.assertEqual(client.connect_kwargs["username"], "burrow")
        self.assertFalse(client.connect_kwargs["look_for_keys"])
        self.assertFalse(client.connect_kwargs["allow_agent"])
        self.assertIn("auth_strategy", client.connect_kwargs)

    def test_payload_is_streamed_as_json_line(self) -> None:
        recorder = ClientRecorder()
        with SSHSession("h", 1, _auth(), client_factory=recorder) as session:
            session.run("api-add-key", {"key": KEY})

        stdin = recorder.clients[0].stdin
        self.assertEqual(stdin.text, json.dumps({"key": KEY}) + "\n")
        self.assertTrue(stdin.channel.write_shut)

    def test_stdout_and_stderr_are_drained_together(self) -> None:
        client = WindowedSSHClient(lambda command, stdin: (b"result", b"warn" * 50, 0))
        with SSHSession("h", 1, _auth(), client_factory=lambda: client) as session:
            result = session.run("keys")

        self.assertEqual(result.stdout, b"result")
        self.assertEqual(result.stderr, "warn" * 50)

    def test_auth_failure_is_typed_and_closes_client(self) -> None:
        client = FakeSSHClient()
        client.connect = mock.Mock(side_effect=paramiko.AuthenticationException("denied"))
        session = SSHSession("h", 1, _auth(), client_factory=lambda: client)
        with self.assertRaises(SSHAuthenticationError):
            session.connect()
        self.assertTrue(client.closed)

    def test_dial_failure_is_connection_error(self) -> None:
        client = FakeSSHClient()
        client.connect = mock.Mock(side_effect=ConnectionRefusedError("refused"))
        session = SSHSession("h", 1, _auth(), client_factory=lambda: client)
        with self.assertRaises(SSHConnectionError) as ctx:
            session.connect()
        self.assertNotIsInstance(ctx.exception, SSHAuthenticationError)
        self.assertTrue(client.closed)


class SSHTransportTests(unittest.TestCase):
    def test_each_invoke_opens_its_own_session(self) -> None:
        recorder = ClientRecorder()
        transport = SSHTransport("h", 1, _auth(), client_factory=recorder)

        transport.invoke("id")
        transport.invoke("keys")

        self.assertEqual(len(recorder.clients), 2)
        self.assertEqual([c.commands for c in recorder.clients], [["id"], ["keys"]])
        self.assertTrue(all(c.closed for c in recorder.clients))

    def test_non_zero_exit_raises_with_output(self) -> None:
        recorder = ClientRecorder(lambda command, stdin: (b"partial", b"boom", 3))
        transport = SSHTransport("h", 1, _auth(), client_factory=recorder)

        with self.assertRaises(RemoteCommandError) as ctx:
            transport.invoke("jwt")

        self.assertEqual(ctx.exception.exit_status, 3)
        self.assertEqual(ctx.exception.output, b"partial")
        self.assertIn("boom", str(ctx.exception))
        self.assertTrue(recorder.clients[0].closed)

    def test_session_failure_still_closes(self) -> None:
        recorder = ClientRecorder()
        transport = SSHTransport("h", 1, _auth(), client_factory=recorder)

        def broken_exec(command):
            raise paramiko.SSHException("channel closed")

        original = recorder.__call__

        def factory():
            client = original()
            client.exec_command = broken_exec
            return client

        transport._client_factory = factory
        with self.assertRaises(SSHConnectionError):
            transport.invoke("id")
        self.assertTrue(recorder.clients[0].closed)

    def test_remote_command_payload_is_sent(self) -> None:
        recorder = ClientRecorder(lambda command, stdin: (b"", b"", 0))
        transport = SSHTransport("h", 1, _auth(), client_factory=recorder)
        command = commands.add_key_command(PublicKeyRecord(key=KEY))

        self.assertEqual(transport.invoke(command), b"")

        client = recorder.clients[0]
        self.assertEqual(client.commands, [command.line])
        self.assertEqual(json.loads(client.stdin.text), command.payload)


class CommandTests(unittest.TestCase):
    def test_vocabulary(self) -> None:
        self.assertEqual(commands.id_command().line, "id")
        self.assertEqual(commands.jwt_command().line, "jwt")
        self.assertEqual(commands.jwt_command("burrow", "notes").line, "jwt burrow notes")
        self.assertEqual(commands.keys_command().line, "keys")
        self.assertEqual(commands.api_keys_command().line, "api-keys")

    def test_response_modes(self) -> None:
        empty = {op for op in Operation if op.response is ResponseMode.EMPTY_ON_SUCCESS}
        self.assertEqual(empty, {Operation.API_ADD_KEY, Operation.API_UNLINK})
        self.assertEqual({op for op in Operation if op.takes_payload}, empty)

    def test_key_commands_inline_compact_json(self) -> None:
        record = PublicKeyRecord(key=KEY)
        link = commands.add_key_command(record)
        unlink = commands.unlink_command(record)

        expected = '{"id":0,"key":"%s","created_at":null}' % KEY
        self.assertEqual(link.line, "api-add-key " + expected)
        self.assertEqual(unlink.line, "api-unlink " + expected)
        self.assertEqual(link.payload, {"id": 0, "key": KEY, "created_at": None})

    def test_empty_output_is_success(self) -> None:
        commands.add_key_command(PublicKeyRecord(key=KEY)).check_empty(b"")
        commands.unlink_command(PublicKeyRecord(key=KEY)).check_empty(b"")

    def test_link_failure_carries_message(self) -> None:
        with self.assertRaises(LinkKeyError) as ctx:
            commands.add_key_command(PublicKeyRecord(key=KEY)).check_empty(b"key already linked\n")
        self.assertEqual(str(ctx.exception), "err: key already linked")

    def test_unlink_failure_is_distinguished(self) -> None:
        with self.assertRaises(CouldNotUnlinkKeyError):
            commands.unlink_command(PublicKeyRecord(key=KEY)).check_empty(b"nope")

    def test_decode_follows_response_mode(self) -> None:
        record = PublicKeyRecord(key=KEY)
        self.assertEqual(commands.id_command().decode(b"acct-1"), "acct-1")
        self.assertEqual(commands.keys_command().decode(b"not empty"), "not empty")
        keys = commands.api_keys_command().decode(b'{"active_key":0,"keys":[]}')
        self.assertIsInstance(keys, KeySet)

        self.assertIsNone(commands.add_key_command(record).decode(b""))
        with self.assertRaises(LinkKeyError):
            commands.add_key_command(record).decode(b"not empty")
        with self.assertRaises(CouldNotUnlinkKeyError):
            commands.unlink_command(record).decode(b"not empty")

    def test_payload_must_match_operation(self) -> None:
        with self.assertRaises(ValueError):
            RemoteCommand(Operation.ID, payload={"key": KEY})
        with self.assertRaises(ValueError):
            RemoteCommand(Operation.API_ADD_KEY, (KEY,))

    def test_decode_key_set(self) -> None:
        payload = {"active_key": 0, "keys": [{"id": 7, "key": KEY, "created_at": None}]}
        keys = commands.decode_key_set(json.dumps(payload).encode())
        self.assertEqual(len(keys), 1)
        self.assertEqual(keys.active.id, 7)
        self.assertIn(KEY, keys)

    def test_malformed_key_set_is_protocol_error(self) -> None:
        with self.assertRaises(ProtocolError):
            commands.decode_key_set(b"{not json")
        with self.assertRaises(ProtocolError):
            commands.decode_key_set(b"[]")


if __name__ == "__main__":
    unittest.main()
