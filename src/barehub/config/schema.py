"""Configuration schema using Pydantic.

Why this exists:
- Type-safe configuration with validation
- Environment variable support
- Multiple deployment profiles (local, server)
- Clear documentation of all settings

How to extend:
1. Add new fields to existing config classes
2. Create new config classes for new components
3. Update barehub.toml with new settings
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class IntrospectionStrategy(str, Enum):
    """Supported tree-read strategies."""

    OBJECT_GRAPH = "object_graph"
    CHECKOUT = "checkout"


class MetadataStoreType(str, Enum):
    """Supported repository record stores."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class StorageConfig(BaseModel):
    """On-disk layout for bare repositories and worktree caches."""

    base_directory: Path = Field(default=Path.home() / ".barehub" / "repositories")
    worktree_root: Path = Field(default=Path.home() / ".barehub" / "worktrees")
    service_user: Optional[str] = Field(
        default=None, description="Owner applied with chown after create (skipped when unset)"
    )

    @field_validator("base_directory", "worktree_root")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        """Expand ~ in paths."""
        return v.expanduser()


class GitConfig(BaseModel):
    """External command configuration."""

    git_binary: str = "git"
    chown_binary: str = "chown"
    command_timeout: Optional[float] = Field(default=60.0, gt=0, description="Seconds; None disables")
    deny_current_branch: str = "ignore"


class IntrospectionConfig(BaseModel):
    """Tree-read configuration.

    The object-graph strategy reads HEAD straight from the object store and is
    the default. The checkout strategy keeps a bounded cache of clones under
    ``storage.worktree_root``.
    """

    strategy: IntrospectionStrategy = IntrospectionStrategy.OBJECT_GRAPH
    max_depth: int = Field(default=64, gt=0)
    max_nodes: int = Field(default=50_000, gt=0)
    include_content: bool = True
    max_content_bytes: int = Field(default=256 * 1024, ge=0, description="Largest blob inlined into a tree read")
    max_file_bytes: int = Field(default=10 * 1024 * 1024, gt=0, description="Largest file served by read_file")
    max_cached_worktrees: int = Field(default=16, gt=0)


class MetadataStoreConfig(BaseModel):
    """Repository record store configuration."""

    store_type: MetadataStoreType = MetadataStoreType.SQLITE
    connection_string: str = f"sqlite:///{Path.home() / '.barehub' / 'barehub.db'}"

    @field_validator("connection_string")
    @classmethod
    def expand_user(cls, v: str) -> str:
        """Expand ~ in connection string."""
        if "~" in v:
            return v.replace("~", str(Path.home()))
        return v


class SSHConfig(BaseModel):
    """authorized_keys location for the git service user."""

    authorized_keys_path: Path = Field(default=Path.home() / ".ssh" / "authorized_keys")

    @field_validator("authorized_keys_path")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    json_logs: bool = False
    enable_file: bool = False
    enable_audit: bool = True
    log_dir: Path = Field(default=Path.home() / ".barehub" / "logs")
    max_days: int = Field(default=30, gt=0)

    @field_validator("log_dir")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()


class AppConfig(BaseSettings):
    """Main application configuration.

    Loads from:
    1. Config file (TOML)
    2. Environment variables (prefixed with BAREHUB_)
    3. .env file
    """

    model_config = SettingsConfigDict(
        env_prefix="BAREHUB_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    app_name: str = "barehub"

    storage: StorageConfig = Field(default_factory=StorageConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    introspection: IntrospectionConfig = Field(default_factory=IntrospectionConfig)
    metadata_store: MetadataStoreConfig = Field(default_factory=MetadataStoreConfig)
    ssh: SSHConfig = Field(default_factory=SSHConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
