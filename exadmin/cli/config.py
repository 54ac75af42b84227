"""Configuration management for the Exchange admin scripts.

Supports YAML-based configuration for the external commands, output location
and release check-in.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class DirectoryConfig:
    """ldifde settings."""

    ldifde_path: str = "ldifde"
    server: Optional[str] = None  # domain controller, None = ldifde default
    timeout: int = 60  # seconds


@dataclass
class ExchangeConfig:
    """PowerShell / Exchange session settings."""

    powershell_path: str = "pwsh"
    # Run before each cmdlet, e.g. "Connect-ExchangeOnline -ShowBanner:$false"
    session_command: Optional[str] = None
    timeout: int = 300  # seconds
    result_size: int = 2000


@dataclass
class OutputConfig:
    """Output file settings."""

    directory: Optional[str] = None


@dataclass
class VersionCheckConfig:
    """Release check-in settings."""

    enabled: bool = True
    url: Optional[str] = None  # JSON release document (GitHub "latest release" shape)
    timeout: int = 10
    ca_bundle: Optional[str] = None
    insecure: bool = False


@dataclass
class Config:
    """Main configuration container."""

    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    version_check: VersionCheckConfig = field(default_factory=VersionCheckConfig)

    # Path the config was loaded from (None = defaults)
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        dir_data = data.get("directory") or {}
        directory = DirectoryConfig(
            ldifde_path=dir_data.get("ldifde_path", "ldifde"),
            server=dir_data.get("server"),
            timeout=dir_data.get("timeout", 60),
        )

        ex_data = data.get("exchange") or {}
        exchange = ExchangeConfig(
            powershell_path=ex_data.get("powershell_path", "pwsh"),
            session_command=ex_data.get("session_command"),
            timeout=ex_data.get("timeout", 300),
            result_size=ex_data.get("result_size", 2000),
        )

        out_data = data.get("output") or {}
        output = OutputConfig(directory=out_data.get("directory"))

        vc_data = data.get("version_check") or {}
        version_check = VersionCheckConfig(
            enabled=vc_data.get("enabled", True),
            url=vc_data.get("url"),
            timeout=vc_data.get("timeout", 10),
            ca_bundle=vc_data.get("ca_bundle"),
            insecure=vc_data.get("insecure", False),
        )

        return cls(
            directory=directory,
            exchange=exchange,
            output=output,
            version_check=version_check,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load config from YAML file."""
        if not path.exists():
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        config = cls.from_dict(data)
        config.source = str(path)
        return config

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """Load config from path or defaults.

        Checks in order:
        1. Provided path
        2. EXADMIN_CONFIG env var
        3. ./configs/config.yaml
        4. ./config.yaml
        5. ~/.exadmin/config.yaml
        6. Default config
        """
        paths_to_try = []

        if config_path:
            paths_to_try.append(Path(config_path))

        if env_path := os.environ.get("EXADMIN_CONFIG"):
            paths_to_try.append(Path(env_path))

        paths_to_try.extend([
            Path("./configs/config.yaml"),
            Path("./config.yaml"),
            Path.home() / ".exadmin" / "config.yaml",
        ])

        for path in paths_to_try:
            if path.exists():
                return cls.from_yaml(path)

        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "directory": {
                "ldifde_path": self.directory.ldifde_path,
                "server": self.directory.server,
                "timeout": self.directory.timeout,
            },
            "exchange": {
                "powershell_path": self.exchange.powershell_path,
                "session_command": self.exchange.session_command,
                "timeout": self.exchange.timeout,
                "result_size": self.exchange.result_size,
            },
            "output": {
                "directory": self.output.directory,
            },
            "version_check": {
                "enabled": self.version_check.enabled,
                "url": self.version_check.url,
                "timeout": self.version_check.timeout,
                "ca_bundle": self.version_check.ca_bundle,
                "insecure": self.version_check.insecure,
            },
        }
