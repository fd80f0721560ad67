"""
Settings for Agent Workspace.

Example:
    ```python
    from agent_workspace.settings import WorkspaceSettings

    # AGENT_WORKSPACE_ROOT_DIR=/srv/workspace
    config = WorkspaceSettings().to_config()
    print(config.filesystem_root_dir)
    ```
"""

from agent_workspace.settings.config import WorkspaceSettings

__all__ = [
    "WorkspaceSettings",
]
