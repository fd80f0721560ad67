"""
Example: Driving the workspace filesystem toolkit from a tool-calling loop

This example shows how a host runtime exposes the workspace tools to an
agent. The "agent" here is a scripted list of tool calls so the example
runs without a model; in practice the calls come from an LLM that was
given ``toolkit.get_tool_schemas()``.
"""

import asyncio
import json
import tempfile
from typing import Any

from agent_workspace import ToolExecuteOptions, WorkspaceFilesystemToolkit
from agent_workspace.filesystem import CancellationToken, create_default_runtime

SCRIPTED_CALLS: list[tuple[str, dict[str, Any]]] = [
    ("write_file", {"path": "/notes/todo.md", "content": "- draft report\n"}),
    ("edit_file", {"path": "/notes/todo.md", "old_string": "draft", "new_string": "review"}),
    ("read_file", {"path": "/notes/todo.md"}),
    ("edit_file", {"path": "/notes/todo.md", "old_string": "draft", "new_string": "review"}),
    ("edit_file", {"path": "/notes/todo.md", "old_string": "- review report\n", "new_string": "- [x] review report\n"}),
    ("read_file", {"path": "/../../etc/passwd"}),
    ("list_tree", {"path": "/"}),
]


def approve(tool_name: str, arguments: dict[str, Any]) -> bool:
    """Stand-in for a human approval prompt."""
    print(f"  [approval] {tool_name} {json.dumps(arguments)} -> approved")
    return True


async def run_agent_turn(toolkit: WorkspaceFilesystemToolkit, conversation_id: str) -> None:
    """Run the scripted calls the way a host runtime would."""
    cancellation = CancellationToken()

    for index, (tool_name, arguments) in enumerate(SCRIPTED_CALLS):
        print(f"\n> {tool_name}")
        tool = toolkit.get_tool(tool_name)
        if tool is None:
            print("  tool not available")
            continue
        if tool.needs_approval and not approve(tool_name, arguments):
            continue

        # One operation id per turn so reads carry over to later edits
        options = ToolExecuteOptions(
            operation_id=f"{conversation_id}:turn-1",
            conversation_id=conversation_id,
            tool_call_id=f"call-{index}",
            cancellation=cancellation,
        )
        result = await toolkit.execute_tool_safe(tool_name, arguments, options)
        print(f"  {json.dumps(result, indent=2)}")


async def main():
    with tempfile.TemporaryDirectory() as tmpdir:
        runtime = create_default_runtime(tmpdir)
        await runtime.init()
        toolkit = WorkspaceFilesystemToolkit(runtime)

        print(f"Workspace root: {runtime.filesystem_root_dir}")
        print(f"Tools: {', '.join(toolkit.tool_names)}")

        await run_agent_turn(toolkit, "conv-1")
        await runtime.destroy()


if __name__ == "__main__":
    asyncio.run(main())
