"""Ollama-compatible HTTP front for OpenAI-compatible model providers.

Ollama clients talk to this package on :11434; chats are forwarded to the
configured provider (OpenRouter by default) and translated back.
"""

__version__ = "0.1.0"
