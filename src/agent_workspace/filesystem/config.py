"""
Configuration for a workspace filesystem.
"""

import json
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from agent_workspace.filesystem.policy import ToolkitPolicies


class WorkspaceConfig(BaseModel):
    """
    Configuration of one workspace instance.

    Defines the root directory every logical path is confined to, the
    per-operation timeout, limits, and the tool policies per toolkit.

    Example:
        ```python
        config = WorkspaceConfig(
            id="research",
            filesystem_root_dir="~/.agent-workspace/fs",
            tools={
                "filesystem": {
                    "tools": {
                        "edit_file": {"needs_approval": True, "require_read_before_write": True},
                    },
                },
            },
        )
        ```
    """

    model_config = {"extra": "forbid"}

    id: str = Field(
        default="default",
        description="Workspace identifier",
    )

    filesystem_root_dir: Path = Field(
        description="Directory all logical paths resolve under (resolved to an absolute path)",
    )

    operation_timeout_ms: int = Field(
        default=30_000,
        ge=1,
        description="Timeout applied to every filesystem operation (milliseconds)",
    )

    read_only: bool = Field(
        default=False,
        description="Hide and refuse all mutating tools",
    )

    max_file_size_bytes: int = Field(
        default=25 * 1024 * 1024,  # 25 MB
        ge=0,
        description="Maximum size of a file that can be read or written (bytes)",
    )

    max_search_results: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Maximum number of glob/grep results to return",
    )

    follow_symlinks: bool = Field(
        default=False,
        description="Allow symbolic links whose target stays inside the root",
    )

    tools: dict[str, ToolkitPolicies] = Field(
        default_factory=dict,
        description="Tool policies keyed by toolkit name (e.g. 'filesystem')",
    )

    @field_validator("filesystem_root_dir", mode="before")
    @classmethod
    def resolve_root(cls, v):
        """Resolve the root directory to an absolute path."""
        return Path(v).expanduser().resolve()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "WorkspaceConfig":
        """
        Load configuration from a YAML or JSON file.

        File format (YAML):
            ```yaml
            id: research
            filesystem_root_dir: ./.workspace/fs
            operation_timeout_ms: 30000
            tools:
              filesystem:
                defaults:
                  needs_approval: false
                tools:
                  delete_file:
                    needs_approval: true
                    require_read_before_write: true
            ```

        Relative root directories are resolved against the file's directory.

        Raises:
            FileNotFoundError: If the config file doesn't exist
        """
        path = Path(path).expanduser().resolve()

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text()

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            # Try YAML first, then JSON
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError:
                data = json.loads(content)

        data = dict(data or {})
        root = data.get("filesystem_root_dir")
        if root is not None and not Path(root).expanduser().is_absolute():
            data["filesystem_root_dir"] = path.parent / root

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkspaceConfig":
        return cls(**data)

    def __repr__(self) -> str:
        return (
            f"WorkspaceConfig("
            f"id={self.id!r}, "
            f"root={str(self.filesystem_root_dir)!r}, "
            f"timeout_ms={self.operation_timeout_ms}, "
            f"read_only={self.read_only})"
        )
