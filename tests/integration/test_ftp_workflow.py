"""Integration tests for FTP workflows.

Runs the client against a real pyftpdlib server: login, directory
operations, listings and uploads.
"""

import asyncio

import pytest

from ftpqueue.ftp.client import AsyncFTPClient, FTPClient
from ftpqueue.ftp.connection import FTPConnectionConfig, SessionState
from ftpqueue.ftp.exceptions import MissingCredentialError, ProtocolError
from ftpqueue.ftp.listing import FileEntry
from ftpqueue.ftp.uploader import UPLOAD_COMPLETE

from .mock_ftp_server import MockFTPServer


@pytest.fixture
def ftp_server():
    """Provide a running mock FTP server."""
    server = MockFTPServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_config(ftp_server) -> FTPConnectionConfig:
    """Configuration pointing at the mock server."""
    return FTPConnectionConfig(
        host=ftp_server.host,
        port=ftp_server.port,
        user=ftp_server.username,
        password=ftp_server.password,
        connect_timeout=5.0,
    )


class TestLoginWorkflow:
    """Integration tests for connecting and logging in."""

    def test_login_and_quit(self, server_config):
        """Test the automatic login and a clean QUIT."""
        async def scenario():
            async with AsyncFTPClient(server_config) as ftp:
                state = ftp.client.state
                await ftp.noop()
            return state, ftp.client.state

        state, final_state = asyncio.run(scenario())

        assert state == SessionState.READY
        assert final_state == SessionState.CLOSED

    def test_wrong_password(self, server_config):
        """Test that a refused login raises ProtocolError."""
        server_config.password = "wrongpassword"

        async def scenario():
            async with AsyncFTPClient(server_config):
                pass

        with pytest.raises(ProtocolError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.code == 530

    def test_missing_password(self, server_config):
        """Test that a 331 without a password raises MissingCredentialError."""
        server_config.password = None

        async def scenario():
            async with AsyncFTPClient(server_config):
                pass

        with pytest.raises(MissingCredentialError):
            asyncio.run(scenario())

    def test_commands_queued_before_greeting(self, server_config):
        """Test that commands issued right after connect run after login."""
        async def scenario():
            client = await FTPClient.connect(server_config)
            loop = asyncio.get_running_loop()
            features = loop.create_future()

            client.noop()
            client.query_server_features(
                callback=lambda error, result: features.set_result((error, result))
            )
            result = await asyncio.wait_for(features, timeout=5)
            client.quit()
            await client.wait_closed()
            return result, [c.text.split(" ")[0] for c in client.queue.history]

        (error, feature_list), sent = asyncio.run(scenario())

        assert error is None
        assert any(f.startswith("UTF8") or f.startswith("MDTM") for f in feature_list)
        assert sent[:4] == ["USER", "PASS", "NOOP", "FEAT"]


class TestDirectoryWorkflow:
    """Integration tests for directory operations."""

    def test_make_list_and_remove(self, ftp_server, server_config):
        """Test MKD, LIST and RMD."""
        async def scenario():
            async with AsyncFTPClient(server_config) as ftp:
                await ftp.make_directory("incoming")
                entries = await ftp.list_directory("/")
                await ftp.remove_directory("incoming")
                return entries

        entries = asyncio.run(scenario())

        names = {e.name for e in entries if isinstance(e, FileEntry)}
        assert {"incoming", "pub"} <= names
        assert not (ftp_server.root_dir / "incoming").exists()

    def test_extended_status(self, server_config):
        """Test STAT on a directory."""
        async def scenario():
            async with AsyncFTPClient(server_config) as ftp:
                return await ftp.get_extended_status("/pub")

        entries = asyncio.run(scenario())

        by_name = {e.name: e for e in entries if isinstance(e, FileEntry)}
        assert by_name["docs"].is_directory is True
        assert by_name["readme.txt"].size == 6

    def test_rename_and_delete(self, ftp_server, server_config):
        """Test RNFR/RNTO followed by DELE."""
        async def scenario():
            async with AsyncFTPClient(server_config) as ftp:
                await ftp.rename_file("pub/readme.txt", "pub/README")
                renamed = (ftp_server.root_dir / "pub" / "README").exists()
                await ftp.delete_file("pub/README")
                return renamed

        assert asyncio.run(scenario()) is True
        assert not (ftp_server.root_dir / "pub" / "README").exists()

    def test_failed_operation_keeps_session(self, server_config):
        """Test that a 550 does not end the session."""
        async def scenario():
            async with AsyncFTPClient(server_config) as ftp:
                with pytest.raises(ProtocolError) as exc_info:
                    await ftp.delete_file("does-not-exist.txt")
                await ftp.noop()
                return exc_info.value.code, ftp.client.state

        code, state = asyncio.run(scenario())

        assert code == 550
        assert state == SessionState.READY


class TestUploadWorkflow:
    """Integration tests for uploads."""

    def test_upload_file(self, ftp_server, server_config, sample_file):
        """Test TYPE I, PASV and STOR of a local file."""
        async def scenario():
            async with AsyncFTPClient(server_config) as ftp:
                await ftp.set_binary_transfer_type()
                await ftp.make_directory("incoming")
                result = await ftp.upload_file(str(sample_file), "incoming/test.txt")
                # Completes once the server's final STOR reply is in
                await ftp.noop()
                return result

        result = asyncio.run(scenario())

        assert result.status == UPLOAD_COMPLETE
        uploaded = ftp_server.root_dir / "incoming" / "test.txt"
        assert uploaded.read_bytes() == sample_file.read_bytes()

    def test_sequential_uploads(self, ftp_server, server_config, tmp_path):
        """Test that each upload gets its own passive data channel."""
        files = []
        for i in range(3):
            path = tmp_path / f"file{i}.bin"
            path.write_bytes(bytes([i]) * (10000 + i))
            files.append(path)

        async def scenario():
            async with AsyncFTPClient(server_config) as ftp:
                for path in files:
                    await ftp.upload_file(str(path), path.name)
                await ftp.noop()
                return ftp.client.data_channels.channels_opened

        assert asyncio.run(scenario()) == 3
        for path in files:
            assert (ftp_server.root_dir / path.name).read_bytes() == path.read_bytes()
