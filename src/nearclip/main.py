"""
nearclip - share your clipboard with a paired device on the local network

Commands:
    nearclip start              Run the server in the foreground
    nearclip status             Check whether the local server answers
    nearclip config             Show/edit configuration
    nearclip match HOST         Fetch the shared key from a discoverable peer
    nearclip ping HOST          Check that a peer is reachable and paired
    nearclip send HOST TEXT     Put text on the peer's clipboard
    nearclip push HOST PATH...  Push files/directories to the peer
    nearclip fetch HOST         Fetch the peer's clipboard
"""
import sys
import signal
import logging
import argparse
import threading
import posixpath
from pathlib import Path

from nearclip import config
from nearclip.client import PeerClient, RequestFailed, decode_copy
from nearclip.common.crypto import Crypter
from nearclip.common.errors import NearclipError, TransferError, get_error_from_exception
from nearclip.common.file_transfer import safe_relative
from nearclip.common.protocol import DataType
from nearclip.common.user_config import ConfigManager, print_config
from nearclip.server import ClipboardServer

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    config.TEMP_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(config.LOG_FILE)
        ]
    )


def _client(args, manager: ConfigManager) -> PeerClient:
    cfg = manager.get()
    return PeerClient(
        host=args.host,
        port=args.port or cfg.port,
        crypter=Crypter.from_hex(cfg.secret_key_hex),
        device_name=cfg.effective_device_name,
    )


def cmd_start(args, manager: ConfigManager):
    """Run the server until interrupted"""
    cfg = manager.get()
    if args.port is not None:
        cfg.port = args.port
    if args.discoverable:
        cfg.allow_discovery = True

    server = ClipboardServer(cfg, advertise=not args.no_advertise)
    stopped = threading.Event()

    def signal_handler(sig, frame):
        print("\nShutting down...")
        stopped.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    server.start()
    print(f"\nnearclip listening on port {server.port} as '{cfg.effective_device_name}'")
    if server.discovery.is_enabled():
        print("Discovery is ON until the first device matches.")

    try:
        stopped.wait()
    finally:
        server.stop()


def cmd_status(args, manager: ConfigManager):
    """Check whether a local server answers with our key"""
    cfg = manager.get()
    client = PeerClient('127.0.0.1', cfg.port, crypter=Crypter.from_hex(cfg.secret_key_hex),
                        device_name=cfg.effective_device_name, timeout=3)
    try:
        running = client.ping()
    except (NearclipError, OSError) as e:
        logger.debug(f"status ping failed: {e}")
        running = False

    print(f"\n  Device: {cfg.effective_device_name}")
    print(f"  Port:   {cfg.port}")
    print(f"  Server: {'RUNNING' if running else 'NOT RUNNING'}\n")
    return 0 if running else 1


def cmd_config(args, manager: ConfigManager):
    """Show or modify configuration"""
    if args.reset:
        manager.reset()
        print("[OK] Configuration reset to defaults.")
    elif args.set:
        key, value = args.set
        # Convert value to appropriate type
        if value.lower() in ('true', 'on', 'yes'):
            value = True
        elif value.lower() in ('false', 'off', 'no'):
            value = False
        elif value.isdigit():
            value = int(value)

        if manager.set(key, value):
            print(f"[OK] Set {key} = {value}")
        else:
            print(f"[ERROR] Could not set {key}")
            print("\nAvailable keys:")
            for k in manager.get().to_dict():
                print(f"  - {k}")
            return 1

    print_config(manager.get(), manager.path)
    return 0


def cmd_match(args, manager: ConfigManager):
    """Adopt the shared key of a discoverable peer"""
    client = PeerClient(host=args.host, port=args.port or manager.get().port,
                        device_name=manager.get().effective_device_name)
    resp = client.match()
    if not manager.set('secret_key_hex', resp.secret_key_hex):
        print("[ERROR] Peer sent an unusable key")
        return 1
    print(f"[OK] Paired with '{resp.device_name}'")
    return 0


def cmd_ping(args, manager: ConfigManager):
    if _client(args, manager).ping():
        print(f"[OK] {args.host} answered")
        return 0
    print(f"[ERROR] {args.host} answered with an unexpected reply")
    return 1


def cmd_send(args, manager: ConfigManager):
    head = _client(args, manager).paste_text(args.text)
    print(f"[OK] {head.msg}")
    return 0


def cmd_push(args, manager: ConfigManager):
    count = _client(args, manager).upload(args.paths)
    print(f"[OK] Pushed {count} file(s)")
    return 0


def _local_name(name: str, fallback: str = "clipboard.bin") -> str:
    """Reduce a peer-chosen file name to a bare name inside the destination"""
    try:
        return safe_relative(posixpath.basename(name.replace('\\', '/')))
    except TransferError:
        return fallback


def cmd_fetch(args, manager: ConfigManager):
    client = _client(args, manager)
    head, body = client.copy()
    data_type, value = decode_copy(head, body)

    if data_type == DataType.TEXT:
        print(value)
        return 0

    dest = Path(args.dest).expanduser()
    dest.mkdir(parents=True, exist_ok=True)
    if data_type == DataType.FILES:
        written = client.download_manifest(value, dest)
        print(f"[OK] Downloaded {len(written)} file(s) to {dest}")
    else:
        target = dest / _local_name(head.msg)
        target.write_bytes(value)
        print(f"[OK] Saved {data_type} to {target}")
    return 0


COMMANDS = {
    'start': cmd_start,
    'status': cmd_status,
    'config': cmd_config,
    'match': cmd_match,
    'ping': cmd_ping,
    'send': cmd_send,
    'push': cmd_push,
    'fetch': cmd_fetch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='nearclip',
        description='Share your clipboard with a paired device on the local network',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nearclip start --discoverable        Run and let a new device match once
  nearclip match 192.168.1.5           Adopt the key of a discoverable peer
  nearclip send 192.168.1.5 "hello"    Paste text on the peer
  nearclip fetch 192.168.1.5           Print or download the peer's clipboard
  nearclip config --set port 9900      Change the listening port
"""
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose logging')
    parser.add_argument('--config', type=Path, default=None, help='Path to config.json')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    start_parser = subparsers.add_parser('start', help='Run the server')
    start_parser.add_argument('--port', type=int, default=None, help=f'Port (default: {config.PORT})')
    start_parser.add_argument('--discoverable', action='store_true', help='Accept one match request')
    start_parser.add_argument('--no-advertise', action='store_true', help='Do not register an mDNS service')

    subparsers.add_parser('status', help='Check whether the local server is running')

    config_parser = subparsers.add_parser('config', help='Show/edit configuration')
    config_parser.add_argument('--show', action='store_true', help='Show current configuration')
    config_parser.add_argument('--reset', action='store_true', help='Reset to default configuration')
    config_parser.add_argument('--set', nargs=2, metavar=('KEY', 'VALUE'), help='Set a configuration value')

    for name, help_text in (('match', 'Fetch the shared key from a discoverable peer'),
                            ('ping', 'Check a paired peer'),
                            ('send', 'Paste text on a peer'),
                            ('push', 'Push files to a peer'),
                            ('fetch', "Fetch a peer's clipboard")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('host', help='Peer IP address')
        sub.add_argument('--port', type=int, default=None, help='Peer port')
        if name == 'send':
            sub.add_argument('text', help='Text to paste')
        elif name == 'push':
            sub.add_argument('paths', nargs='+', help='Files or directories')
        elif name == 'fetch':
            sub.add_argument('--dest', default='.', help='Where to store files or images')

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(args.verbose)
    manager = ConfigManager(args.config)

    try:
        return COMMANDS[args.command](args, manager) or 0
    except RequestFailed as e:
        print(f"[ERROR] {get_error_from_exception(e)}\n  Details: {e.msg}")
        return 1
    except (NearclipError, OSError) as e:
        print(f"[ERROR] {get_error_from_exception(e)}\n  Details: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
