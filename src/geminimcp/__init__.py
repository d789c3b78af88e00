"""geminimcp - Gemini generation, chat sessions, files and caches over MCP."""

__version__ = "0.1.0"
