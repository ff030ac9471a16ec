"""Console display module.

Intent: Rich-based terminal UI for langflow-chat.
"""

from .display import ConsoleChatDisplay, ConsoleMessage

__all__ = ["ConsoleChatDisplay", "ConsoleMessage"]
