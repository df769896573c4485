"""Provider-agnostic streaming chat with in-stream tool calling."""

__version__ = "0.1.0"
