"""
User Configuration Management

Manages user-editable settings stored in a JSON file in the data directory.
The shared secret is generated on first start and kept here too.
"""
import os
import json
import socket
import logging
from pathlib import Path
from typing import Any, List, Optional
from dataclasses import dataclass, asdict

from nearclip import config
from nearclip.common.crypto import KEY_SIZE, generate_key_hex

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


def default_device_name() -> str:
    """Return a readable default device name"""
    return socket.gethostname() or "Unknown"


@dataclass
class ServerConfig:
    """User configuration for the nearclip server"""

    device_name: str = ""
    secret_key_hex: str = ""
    port: int = config.PORT
    save_dir: str = ""

    # Behavior
    allow_discovery: bool = False
    show_notifications: bool = True

    @property
    def effective_device_name(self) -> str:
        return self.device_name or default_device_name()

    @property
    def effective_save_dir(self) -> Path:
        if self.save_dir:
            return Path(self.save_dir).expanduser()
        return config.get_default_save_dir()

    def validate(self) -> List[str]:
        """Return a list of problems; empty when the config is usable"""
        errors = []

        if not isinstance(self.port, int) or isinstance(self.port, bool) or not 0 <= self.port <= 65535:
            errors.append(f"port must be between 0 and 65535, got {self.port!r}")

        if self.secret_key_hex:
            try:
                key = bytes.fromhex(self.secret_key_hex)
            except (TypeError, ValueError):
                errors.append("secret_key_hex is not valid hex")
            else:
                if len(key) != KEY_SIZE:
                    errors.append(f"secret_key_hex must encode {KEY_SIZE} bytes, got {len(key)}")

        if not isinstance(self.device_name, str):
            errors.append("device_name must be a string")

        if not isinstance(self.save_dir, str):
            errors.append("save_dir must be a string")

        for flag in ("allow_discovery", "show_notifications"):
            if not isinstance(getattr(self, flag), bool):
                errors.append(f"{flag} must be true or false")

        return errors

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'ServerConfig':
        """Create config from dict, using defaults for missing keys"""
        defaults = cls()
        for key, value in data.items():
            if hasattr(defaults, key) and not key.startswith('effective_'):
                setattr(defaults, key, value)
        return defaults


class ConfigManager:
    """Manages loading, saving, and accessing user configuration"""

    def __init__(self, config_path: Optional[Path] = None):
        self.path = Path(config_path) if config_path else config.get_data_dir() / CONFIG_FILE_NAME
        self._config: Optional[ServerConfig] = None

    def load(self) -> ServerConfig:
        """Load configuration from file, creating it with a fresh secret if needed"""
        loaded = None
        if self.path.exists():
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    loaded = ServerConfig.from_dict(json.load(f))
                logger.info(f"Loaded config from {self.path}")
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to load config: {e}, using defaults")

        if loaded is not None:
            problems = loaded.validate()
            if problems:
                for problem in problems:
                    logger.warning(f"Invalid config: {problem}")
                logger.warning("Falling back to defaults")
                loaded = None

        if loaded is None:
            loaded = ServerConfig()

        self._config = loaded
        if not loaded.secret_key_hex:
            loaded.secret_key_hex = generate_key_hex()
            logger.info("Generated a new shared secret key")
            self.save()

        return self._config

    def save(self) -> bool:
        """Save configuration to file"""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(self.get().to_dict(), f, indent=2, ensure_ascii=False)

            # The file holds the shared secret
            if os.name != 'nt':
                os.chmod(self.path, 0o600)

            logger.info(f"Saved config to {self.path}")
            return True
        except OSError as e:
            logger.error(f"Failed to save config: {e}")
            return False

    def get(self) -> ServerConfig:
        """Get current configuration"""
        if self._config is None:
            self.load()
        return self._config

    def set(self, key: str, value: Any) -> bool:
        """Set a configuration value"""
        current = self.get()
        if key not in current.to_dict():
            logger.error(f"Unknown config key: {key}")
            return False

        previous = getattr(current, key)
        setattr(current, key, value)
        problems = current.validate()
        if problems:
            setattr(current, key, previous)
            for problem in problems:
                logger.error(f"Invalid value for {key}: {problem}")
            return False
        return self.save()

    def reset(self) -> ServerConfig:
        """Reset to defaults, keeping the shared secret so paired peers still work"""
        secret = self.get().secret_key_hex
        self._config = ServerConfig(secret_key_hex=secret)
        self.save()
        return self._config


def print_config(cfg: ServerConfig, path: Path):
    """Print current configuration in a readable format"""
    print("\n" + "=" * 50)
    print("  nearclip - Configuration")
    print("=" * 50)

    print(f"\n  Device Name:    {cfg.effective_device_name}")
    print(f"  Port:           {cfg.port}")
    print(f"  Save Directory: {cfg.effective_save_dir}")
    print(f"  Discovery:      {'ON' if cfg.allow_discovery else 'OFF'}")
    print(f"  Notifications:  {'ON' if cfg.show_notifications else 'OFF'}")
    print(f"  Secret Key:     {cfg.secret_key_hex[:8]}... ({len(cfg.secret_key_hex) // 2} bytes)")

    print(f"\n  Config File: {path}")
    print("=" * 50 + "\n")
