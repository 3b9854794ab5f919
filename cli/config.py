"""Configuration management for the chainpix CLI."""

import json
import os
import shutil
from pathlib import Path
from typing import List, Optional

from common.constants import DEFAULT_RPC_NODES, RPC_TIMEOUT_SECONDS


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "signer_url": "http://localhost:8787",
        "rpc_nodes": list(DEFAULT_RPC_NODES),
        "timeout": RPC_TIMEOUT_SECONDS,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "download_dir": "downloads",
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.chainpix/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _defaults(self) -> dict:
        """Built-in defaults, overridden by CHAINPIX_SIGNER_URL and CHAINPIX_RPC_NODES."""
        config = dict(self.DEFAULT_CONFIG)
        config["signer_url"] = os.environ.get("CHAINPIX_SIGNER_URL", self.DEFAULT_CONFIG["signer_url"])
        env_nodes = os.environ.get("CHAINPIX_RPC_NODES", "")
        nodes = [node.strip() for node in env_nodes.split(",") if node.strip()]
        config["rpc_nodes"] = nodes or list(self.DEFAULT_CONFIG["rpc_nodes"])
        return config

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.chainpix' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self._defaults()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError):
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError:
                    pass
                return self._defaults()
        else:
            config = self._defaults()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError:
                pass
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError:
            pass

    def get_account(self) -> Optional[str]:
        """
        Get the active Hive account.

        Returns:
            Account name or None if not logged in
        """
        return self.data.get('account')

    def set_account(self, account: str) -> None:
        """
        Set active account and save to file.

        Args:
            account: Hive account name (without @)
        """
        self.data['account'] = account
        self.save()

    def get_signer_url(self) -> str:
        return self.data.get('signer_url', self.DEFAULT_CONFIG['signer_url'])

    def get_rpc_nodes(self) -> List[str]:
        nodes = self.data.get('rpc_nodes') or list(DEFAULT_RPC_NODES)
        return [node for node in nodes if node]

    def get_timeout(self) -> float:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return self.data.get('timeout', RPC_TIMEOUT_SECONDS)

    def get_download_dir(self) -> Path:
        return Path(self.data.get('download_dir', 'downloads'))

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }
