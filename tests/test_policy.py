"""
Tests for tool policies.
"""

import pytest
from pydantic import ValidationError

from agent_workspace.filesystem import PolicyGate, ToolkitPolicies, ToolPolicy


@pytest.fixture
def gate():
    """A gate with filesystem defaults and a few overrides."""
    return PolicyGate({
        "filesystem": ToolkitPolicies.model_validate({
            "defaults": {"needs_approval": True},
            "tools": {
                "ls": {"needs_approval": False},
                "edit_file": {"require_read_before_write": True},
                "delete_file": {"enabled": False},
            },
        }),
    })


class TestToolPolicy:
    """Tests for ToolPolicy."""

    def test_defaults(self):
        """Test the neutral policy."""
        policy = ToolPolicy()
        assert policy.enabled is True
        assert policy.needs_approval is False
        assert policy.require_read_before_write is False

    def test_unknown_field_rejected(self):
        """Test that typos in policy files are caught."""
        with pytest.raises(ValidationError):
            ToolPolicy.model_validate({"needs_aproval": True})


class TestPolicyGate:
    """Tests for PolicyGate."""

    def test_no_config(self):
        """Test that an unconfigured gate yields neutral policies."""
        assert PolicyGate().get_policy("filesystem", "write_file") == ToolPolicy()

    def test_unknown_toolkit(self, gate):
        """Test lookups for a toolkit without policies."""
        assert gate.get_policy("shell", "run") == ToolPolicy()

    def test_defaults_apply(self, gate):
        """Test that tools without overrides get the defaults."""
        policy = gate.get_policy("filesystem", "write_file")
        assert policy.needs_approval is True
        assert policy.require_read_before_write is False

    def test_override_merges_with_defaults(self, gate):
        """Test that an override keeps defaults for fields it does not set."""
        policy = gate.get_policy("filesystem", "edit_file")
        assert policy.needs_approval is True
        assert policy.require_read_before_write is True

    def test_override_replaces_default(self, gate):
        """Test that an explicit override beats the default."""
        assert gate.get_policy("filesystem", "ls").needs_approval is False

    def test_is_enabled(self, gate):
        """Test enabled lookups."""
        assert gate.is_enabled("filesystem", "read_file")
        assert not gate.is_enabled("filesystem", "delete_file")
