"""Remote AI surfaces: assistant replies and tool dispatch."""

from genba.ai.assist import AssistClient
from genba.ai.tools import ToolDispatcher

__all__ = ["AssistClient", "ToolDispatcher"]
