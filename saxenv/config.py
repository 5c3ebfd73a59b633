"""Module for configuration variables with defaults that are overridable by a file."""

from __future__ import annotations

from configparser import ConfigParser, SectionProxy
from dataclasses import dataclass, field
from typing import Optional

from saxenv.logger import log


@dataclass
class StorageConfig:
    """Configuration variables related to the object store client."""

    # Custom endpoint for S3 compatible stores like MinIO, None for AWS itself.
    endpoint_url: Optional[str] = None
    region: Optional[str] = None

    connect_timeout: int = 10

    @staticmethod
    def load(section: SectionProxy) -> StorageConfig:
        """Load overridden variables from a section within a config file."""
        config = StorageConfig()

        config.endpoint_url = section.get("endpoint_url", fallback=config.endpoint_url)
        config.region = section.get("region", fallback=config.region)
        config.connect_timeout = section.getint(
            "connect_timeout", fallback=config.connect_timeout
        )

        return config


@dataclass
class RpcConfig:
    """Configuration variables related to RPC clients and servers."""

    timeout_ms: int = 5000
    workers: int = 4

    @staticmethod
    def load(section: SectionProxy) -> RpcConfig:
        """Load overridden variables from a section within a config file."""
        config = RpcConfig()

        config.timeout_ms = section.getint("timeout_ms", fallback=config.timeout_ms)
        config.workers = section.getint("workers", fallback=config.workers)

        return config


@dataclass
class Config:
    """Configuration variables."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)

    @staticmethod
    def load(filename: str) -> Config:
        """Load overridden configuration variables from a config file."""
        parser = ConfigParser()

        config = Config()

        try:
            with open(filename, "r") as f:
                parser.read_string(f.read(), filename)

            if "storage" in parser:
                config.storage = StorageConfig.load(parser["storage"])
            if "rpc" in parser:
                config.rpc = RpcConfig.load(parser["rpc"])
        except FileNotFoundError:
            log.info(f"no config file at {filename}")
        except Exception as e:
            # An unreadable config file is not considered a fatal error since we can
            # fall back to defaults.
            log.error(f"failed to read config file {filename}: {e}")
        else:
            log.info(f"loaded config: {config}")

        return config
