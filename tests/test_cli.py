import io
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from rich.console import Console

from burrow import cli
from burrow.config import Config
from burrow.errors import CouldNotUnlinkKeyError
from burrow.models import KeySet, PublicKeyRecord, User

KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIHNvbWVrZXlzb21la2V5c29tZWtleXNvbWVrZXlzb20="


class CLITests(unittest.TestCase):
    def setUp(self) -> None:
        self.output = io.StringIO()
        self.console = Console(file=self.output, width=100, color_system=None)
        self.client = mock.MagicMock()
        self.client.__enter__.return_value = self.client
        self.client.__exit__.return_value = False
        patches = [
            mock.patch.object(cli, "Client", return_value=self.client),
            mock.patch.object(cli, "load_config", return_value=Config(host="example.test")),
            mock.patch.object(cli, "configure_logging"),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def run_cli(self, *argv: str) -> int:
        return cli.run_cli(list(argv), console=self.console)

    def test_id(self) -> None:
        self.client.id.return_value = "acct-123"
        self.assertEqual(self.run_cli("id"), 0)
        self.assertIn("acct-123", self.output.getvalue())
        self.client.close.assert_not_called()
        self.client.__exit__.assert_called_once()

    def test_jwt_passes_audience(self) -> None:
        self.client.jwt.return_value = "token"
        self.assertEqual(self.run_cli("jwt", "burrow", "notes"), 0)
        self.client.jwt.assert_called_once_with("burrow", "notes")

    def test_keys_json(self) -> None:
        self.client.authorized_keys_with_metadata.return_value = KeySet(
            keys=(PublicKeyRecord(key=KEY, id=3),), active_key=0
        )
        self.assertEqual(self.run_cli("keys", "--json"), 0)
        self.assertIn('"active_key": 0', self.output.getvalue())

    def test_link_reads_public_key_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            keyfile = Path(tmp) / "id.pub"
            keyfile.write_text(KEY + " me@laptop\n", encoding="utf-8")
            self.assertEqual(self.run_cli("link", str(keyfile)), 0)
        self.client.link_key.assert_called_once_with(KEY)

    def test_unlink_failure_exits_non_zero(self) -> None:
        self.client.unlink_key.side_effect = CouldNotUnlinkKeyError()
        self.assertEqual(self.run_cli("unlink", KEY), 1)
        self.assertIn("error: could not unlink key", self.output.getvalue())

    def test_set_name_rejects_invalid_without_client(self) -> None:
        self.assertEqual(self.run_cli("set-name", "bad name"), 1)
        cli.Client.assert_not_called()

    def test_info_renders_user(self) -> None:
        self.client.bio.return_value = User(
            name="rabbit", created_at=datetime(2021, 1, 2, tzinfo=timezone.utc)
        )
        self.assertEqual(self.run_cli("info"), 0)
        text = self.output.getvalue()
        self.assertIn("Username", text)
        self.assertIn("rabbit", text)
        self.assertIn("02 Jan 2021", text)

    def test_info_without_name(self) -> None:
        self.client.bio.return_value = User(created_at=datetime(2021, 1, 2))
        self.run_cli("info")
        self.assertIn("(none set)", self.output.getvalue())


if __name__ == "__main__":
    unittest.main()
