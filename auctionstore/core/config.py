"""
Chain configuration parameters for auctionstore.

Defines where state and logs live and the starting block height of a
fresh chain. Values can be overridden from the environment
(``AUCTIONSTORE_*``) or a ``.env`` file.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from auctionstore.utils.validation import validate_block_number

ENV_PREFIX = "AUCTIONSTORE_"


@dataclass
class ChainConfig:
    """Chain-wide configuration parameters"""

    # Host chain
    genesis_block: int = 0              # Block height of a fresh chain

    # Logging
    log_level: int = logging.INFO
    log_to_file: bool = False

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    db_name: str = "auctionstore.db"

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    def ensure_dirs(self):
        """Create necessary directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        if self.log_to_file:
            self.log_dir.mkdir(exist_ok=True, parents=True)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_file: Optional[str] = None) -> ChainConfig:
    """
    Load configuration from the environment.

    Args:
        env_file: Optional path to a .env file. Variables already set in
            the process environment take precedence.

    Returns:
        ChainConfig instance

    Raises:
        ValueError: if a variable has an unparseable value
    """
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    config = ChainConfig()

    data_dir = os.getenv(ENV_PREFIX + "DATA_DIR")
    if data_dir:
        config.data_dir = Path(data_dir).expanduser()

    log_dir = os.getenv(ENV_PREFIX + "LOG_DIR")
    if log_dir:
        config.log_dir = Path(log_dir).expanduser()

    db_name = os.getenv(ENV_PREFIX + "DB_NAME")
    if db_name:
        config.db_name = db_name

    genesis_block = os.getenv(ENV_PREFIX + "GENESIS_BLOCK")
    if genesis_block:
        config.genesis_block = int(genesis_block)
        valid, err = validate_block_number(config.genesis_block, ENV_PREFIX + "GENESIS_BLOCK")
        if not valid:
            raise ValueError(err)

    log_level = os.getenv(ENV_PREFIX + "LOG_LEVEL")
    if log_level:
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {log_level}")
        config.log_level = level

    log_to_file = os.getenv(ENV_PREFIX + "LOG_TO_FILE")
    if log_to_file:
        config.log_to_file = _env_bool(log_to_file)

    return config
