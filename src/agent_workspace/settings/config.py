"""
Environment-driven settings for Agent Workspace.

Values come from ``AGENT_WORKSPACE_*`` environment variables or a ``.env``
file and override whatever the optional configuration file specifies.
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_workspace.filesystem.config import WorkspaceConfig
from agent_workspace.filesystem.runtime import default_tool_config


class WorkspaceSettings(BaseSettings):
    """
    Workspace settings loaded from the environment.

    Environment variables:
        AGENT_WORKSPACE_CONFIG_FILE - YAML/JSON workspace configuration
        AGENT_WORKSPACE_ROOT_DIR - Workspace root directory
        AGENT_WORKSPACE_OPERATION_TIMEOUT_MS - Per-operation timeout
        AGENT_WORKSPACE_READ_ONLY - Hide mutating tools

    Example:
        ```python
        settings = WorkspaceSettings(root_dir="/tmp/ws")
        config = settings.to_config()
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENT_WORKSPACE_",
        env_file=".env",
        extra="ignore",
    )

    config_file: Optional[Path] = Field(
        default=None,
        description="Workspace configuration file (YAML or JSON)",
    )
    root_dir: Optional[Path] = Field(
        default=None,
        description="Workspace root directory (overrides the config file)",
    )
    operation_timeout_ms: Optional[int] = Field(
        default=None,
        ge=1,
        description="Per-operation timeout in milliseconds (overrides the config file)",
    )
    read_only: Optional[bool] = Field(
        default=None,
        description="Read-only mode (overrides the config file)",
    )

    def to_config(self) -> WorkspaceConfig:
        """
        Build the workspace configuration.

        Without a config file the default filesystem policies apply.

        Raises:
            ValueError: If neither a config file nor a root directory is set
        """
        data: dict[str, Any]
        if self.config_file is not None:
            data = WorkspaceConfig.from_file(self.config_file).model_dump(exclude_unset=True)
        elif self.root_dir is not None:
            data = {"tools": default_tool_config()}
        else:
            raise ValueError(
                "Missing workspace location: set AGENT_WORKSPACE_ROOT_DIR "
                "or AGENT_WORKSPACE_CONFIG_FILE"
            )

        if self.root_dir is not None:
            data["filesystem_root_dir"] = self.root_dir
        if self.operation_timeout_ms is not None:
            data["operation_timeout_ms"] = self.operation_timeout_ms
        if self.read_only is not None:
            data["read_only"] = self.read_only

        return WorkspaceConfig.from_dict(data)
