"""
Integration tests: a real ClipboardServer on loopback driven by PeerClient
"""
import pytest

from nearclip.client import PeerClient, RequestFailed, decode_copy
from nearclip.common.clipboard_state import ClipboardKind
from nearclip.common.crypto import Crypter
from nearclip.common.errors import AuthError
from nearclip.common.protocol import DataType, StatusCode
from nearclip.common.user_config import ServerConfig
from nearclip.server import ClipboardServer


@pytest.fixture
def server_config(encryption_key, temp_dir) -> ServerConfig:
    return ServerConfig(
        device_name="desk",
        secret_key_hex=encryption_key.hex(),
        port=0,
        save_dir=str(temp_dir / "inbox"),
    )


@pytest.fixture
def make_server(server_config, notifier, temp_dir):
    servers = []

    def factory(**overrides):
        for key, value in overrides.items():
            setattr(server_config, key, value)
        server = ClipboardServer(
            server_config,
            notifier=notifier,
            host='127.0.0.1',
            advertise=False,
            fault_log_path=temp_dir / "panic.log",
        )
        server.start()
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.stop()


@pytest.fixture
def server(make_server):
    return make_server()


@pytest.fixture
def client(server, crypter) -> PeerClient:
    return PeerClient('127.0.0.1', server.port, crypter=crypter, device_name="laptop", timeout=5)


class TestServer:
    """End to end over TCP"""

    def test_ping(self, client):
        assert client.ping() is True

    def test_wrong_key_rejected(self, server):
        stranger = PeerClient('127.0.0.1', server.port, crypter=Crypter(b"s" * 32), timeout=5)
        with pytest.raises(RequestFailed) as exc_info:
            stranger.ping()
        assert exc_info.value.code == StatusCode.UNAUTHORIZED
        assert isinstance(exc_info.value, AuthError)

    def test_paste_text(self, client, server, notifier):
        head = client.paste_text("hello from the laptop")
        assert head.msg == "paste succeeded"
        assert server.clipboard.read() == (ClipboardKind.TEXT, b"hello from the laptop")
        assert notifier.shown.wait(5)
        assert notifier.messages[0] == ("hello from the laptop", "laptop")

    def test_copy_text(self, client, server):
        server.clipboard.write(ClipboardKind.TEXT, "shared note".encode('utf-8'))
        data_type, value = decode_copy(*client.copy())
        assert data_type == DataType.TEXT
        assert value == "shared note"

    def test_copy_empty(self, client):
        with pytest.raises(RequestFailed, match="clipboard is empty"):
            client.copy()

    def test_copy_files_and_download(self, client, server, temp_dir):
        folder = temp_dir / "outbox" / "X"
        (folder / "sub").mkdir(parents=True)
        (folder / "a.txt").write_bytes(b"alpha")
        (folder / "sub" / "b.bin").write_bytes(bytes(range(256)) * 300)
        server.clipboard.set_files([str(folder)])

        head, _ = client.copy()
        data_type, manifest = decode_copy(head, b"")
        assert data_type == DataType.FILES

        dest = temp_dir / "downloads"
        written = client.download_manifest(manifest, dest)
        assert len(written) == 2
        assert (dest / "X" / "a.txt").read_bytes() == b"alpha"
        assert (dest / "X" / "sub" / "b.bin").read_bytes() == bytes(range(256)) * 300

        # Copying files clears the local clipboard
        assert server.clipboard.read_files() == []

    def test_download_byte_range(self, client, server, sample_file):
        server.state.select_files([str(sample_file)])
        head, _ = client.copy()
        path = head.paths[0].path
        assert client.download(path, 7, 12) == b"World"

    def test_upload(self, client, server_config, temp_dir, notifier):
        source = temp_dir / "upload" / "Photos"
        (source / "2024").mkdir(parents=True)
        (source / "cover.jpg").write_bytes(b"\xff\xd8" + b"j" * 3000)
        (source / "2024" / "empty.txt").write_bytes(b"")
        single = temp_dir / "upload" / "notes.md"
        single.write_text("# notes")

        assert client.upload([str(source), str(single)]) == 3

        inbox = server_config.effective_save_dir
        assert (inbox / "Photos" / "cover.jpg").read_bytes() == b"\xff\xd8" + b"j" * 3000
        assert (inbox / "Photos" / "2024" / "empty.txt").read_bytes() == b""
        assert (inbox / "notes.md").read_text() == "# notes"
        assert notifier.messages[-1][0].startswith("Received 3 file(s)")

    def test_download_requires_manifest(self, client, sample_file):
        with pytest.raises(RequestFailed, match="path not shared"):
            client.download(str(sample_file))


class TestDiscovery:
    def test_match_only_while_discoverable(self, make_server, encryption_key):
        server = make_server(allow_discovery=True)
        newcomer = PeerClient('127.0.0.1', server.port, device_name="phone", timeout=5)

        resp = newcomer.match()
        assert resp.device_name == "desk"
        assert resp.secret_key_hex == encryption_key.hex()

        with pytest.raises(RequestFailed) as exc_info:
            newcomer.match()
        assert exc_info.value.msg == "search not allowed"

    def test_match_refused_by_default(self, server):
        with pytest.raises(RequestFailed, match="search not allowed"):
            PeerClient('127.0.0.1', server.port, timeout=5).match()

    def test_reopen_discovery(self, server):
        server.enable_discovery()
        assert PeerClient('127.0.0.1', server.port, timeout=5).match().device_name == "desk"
