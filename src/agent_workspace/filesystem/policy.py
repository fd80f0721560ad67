"""
Per-tool policies for workspace toolkits.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ToolPolicy(BaseModel):
    """
    Policy for a single tool.

    Only fields that were set explicitly take part in merging, so an
    override of ``{"needs_approval": true}`` keeps the toolkit's default for
    the other fields.
    """

    model_config = {"extra": "forbid", "frozen": True}

    enabled: bool = Field(
        default=True,
        description="Expose the tool at all",
    )
    needs_approval: bool = Field(
        default=False,
        description="Host runtime must approve each call before execution",
    )
    require_read_before_write: bool = Field(
        default=False,
        description="Mutations need a prior read of the same path in the same operation",
    )


class ToolkitPolicies(BaseModel):
    """Defaults plus per-tool overrides for one toolkit."""

    model_config = {"extra": "forbid"}

    defaults: ToolPolicy = Field(default_factory=ToolPolicy)
    tools: dict[str, ToolPolicy] = Field(default_factory=dict)


class PolicyGate:
    """
    Lookup table from (toolkit, tool) to the effective policy.

    Usage:
        gate = PolicyGate({
            "filesystem": ToolkitPolicies(
                tools={"edit_file": ToolPolicy(require_read_before_write=True)},
            ),
        })
        gate.get_policy("filesystem", "edit_file").require_read_before_write  # True
    """

    def __init__(self, config: Optional[dict[str, ToolkitPolicies]] = None):
        self._config = dict(config or {})

    def get_policy(self, toolkit: str, tool: str) -> ToolPolicy:
        toolkit_policies = self._config.get(toolkit)
        if toolkit_policies is None:
            return ToolPolicy()

        merged = toolkit_policies.defaults.model_dump(exclude_unset=True)
        override = toolkit_policies.tools.get(tool)
        if override is not None:
            merged.update(override.model_dump(exclude_unset=True))
        return ToolPolicy(**merged)

    def is_enabled(self, toolkit: str, tool: str) -> bool:
        return self.get_policy(toolkit, tool).enabled

    def __repr__(self) -> str:
        return f"PolicyGate(toolkits={sorted(self._config)})"
