import os
import sys

import pytest

# Ensure repository root is on sys.path before importing project modules.
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

from zkpret_mcp.catalog import ToolDefinition  # noqa: E402
from zkpret_mcp.metrics import default_metrics  # noqa: E402

WALLET_ADDRESS = "B62qiy32p8kAKnny8ZFwoMhYpBppM1DWVCqAPBYNcXnsAHhnfAAuXgg"
OTHER_ADDRESS = "B62qrPN5Y5yq8kGE3FbVKbGTdTAJNdtNtB5sNVpxyRwWGcDEhpMzc8g"


@pytest.fixture(autouse=True)
def reset_metrics():
    default_metrics.reset()
    yield
    default_metrics.reset()


def make_definition(name, properties=None, required=None, description=None):
    """Build a minimal object-rooted tool definition for tests."""
    return ToolDefinition(
        name=name,
        description=description or f"Test tool {name}",
        input_shape={
            "type": "object",
            "properties": properties or {},
            "required": list(required or []),
            "additionalProperties": False,
        },
    )
