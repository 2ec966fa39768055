"""Unit tests for the subprocess helper."""

import asyncio
import sys

import pytest

from apkforge.core.exceptions import ToolNotFoundError
from apkforge.toolchain.interface import ToolAborted
from apkforge.toolchain.process import run_tool


@pytest.mark.asyncio
class TestRunTool:
    """Tests for running external tools."""

    async def test_captures_output(self):
        """Test stdout, stderr and exit status are captured."""
        output = await run_tool(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"]
        )
        assert output.returncode == 3
        assert not output.ok
        assert output.stdout.strip() == "out"
        assert output.tail() == "err"

    async def test_extra_environment(self):
        """Test extra variables are merged over the environment."""
        output = await run_tool(
            [sys.executable, "-c", "import os; print(os.environ['APKFORGE_TEST_VALUE'])"],
            env={"APKFORGE_TEST_VALUE": "42"},
        )
        assert output.ok
        assert output.stdout.strip() == "42"

    async def test_missing_program(self, temp_dir):
        """Test a missing executable raises ToolNotFoundError."""
        with pytest.raises(ToolNotFoundError) as exc_info:
            await run_tool([str(temp_dir / "no-such-tool")])
        assert exc_info.value.tool_name == "no-such-tool"

    async def test_timeout(self):
        """Test a tool exceeding its bound is terminated."""
        with pytest.raises(asyncio.TimeoutError):
            await run_tool([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)

    async def test_abort(self):
        """Test setting the abort signal stops the tool."""
        abort = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.call_later(0.3, abort.set)

        with pytest.raises(ToolAborted):
            await run_tool([sys.executable, "-c", "import time; time.sleep(30)"], abort=abort)
