"""
Configuration for the perimeter pipeline.

A config object is passed explicitly to each phase; nothing here is global.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .logging_config import get_logger
from .objects import AddressBlock

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".perimeter-agent" / "config.yaml"
CONFIG_SECTION = "perimeter"


class PerimeterConfig(BaseModel):
    """Ports, prefixes and markers the compiler and checker enforce."""

    admin_ports: List[int] = Field(default_factory=lambda: [22, 3389, 5985, 5986])
    plaintext_ports: Dict[int, int] = Field(default_factory=lambda: {80: 443})
    encrypted_ports: List[int] = Field(default_factory=lambda: [443])
    unrestricted_cidrs: List[str] = Field(default_factory=lambda: ["0.0.0.0/0", "::/0"])
    subnet_prefix: int = 24
    reserved_leading_blocks: int = 1
    full_access_markers: List[str] = Field(
        default_factory=lambda: ["FullAccess", "AdministratorAccess", "PowerUserAccess"]
    )
    require_recorder: bool = False
    placeholder_is_violation: bool = False

    def is_admin_port(self, port: int) -> bool:
        return port in self.admin_ports

    def is_unrestricted(self, cidr: str) -> bool:
        """Check if a CIDR matches every address of its family."""
        return cidr in self.unrestricted_cidrs or AddressBlock(cidr=cidr).is_unrestricted()

    @classmethod
    def load_from_file(cls, config_path: Optional[Path] = None) -> "PerimeterConfig":
        """Load configuration from the ``perimeter`` section of a YAML file."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        if not config_path.exists():
            logger.info(
                "Config file not found at %s, using defaults and environment variables",
                config_path,
            )
            return cls.load_from_env()

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
                return cls(**(data.get(CONFIG_SECTION) or {}))
        except (OSError, yaml.YAMLError, ValueError) as e:
            logger.warning("Failed to load config from %s: %s", config_path, e)
            return cls.load_from_env()

    @classmethod
    def load_from_env(cls) -> "PerimeterConfig":
        """Load configuration from environment variables."""
        values: Dict[str, object] = {}

        for variable, field in (
            ("PERIMETER_ADMIN_PORTS", "admin_ports"),
            ("PERIMETER_ENCRYPTED_PORTS", "encrypted_ports"),
        ):
            raw = os.getenv(variable)
            if raw:
                try:
                    values[field] = [int(port) for port in raw.split(",") if port.strip()]
                except ValueError:
                    logger.warning("Invalid %s: %s, using defaults", variable, raw)

        prefix = os.getenv("PERIMETER_SUBNET_PREFIX")
        if prefix:
            try:
                values["subnet_prefix"] = int(prefix)
            except ValueError:
                logger.warning("Invalid PERIMETER_SUBNET_PREFIX: %s, using default", prefix)

        require_recorder = os.getenv("PERIMETER_REQUIRE_RECORDER")
        if require_recorder:
            values["require_recorder"] = require_recorder.lower() in ("1", "true", "yes")

        return cls(**values)

    def save_to_file(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to the ``perimeter`` section of a YAML file."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        config_path.parent.mkdir(parents=True, exist_ok=True)

        existing_data = {}
        if config_path.exists():
            with open(config_path) as f:
                existing_data = yaml.safe_load(f) or {}

        existing_data[CONFIG_SECTION] = self.model_dump()

        with open(config_path, "w") as f:
            yaml.dump(existing_data, f, default_flow_style=False, sort_keys=False)

        logger.info("Configuration saved to %s", config_path)
