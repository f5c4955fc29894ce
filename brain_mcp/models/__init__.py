"""Model clients for Brain MCP."""

from .llm_client import LLMClient

__all__ = ["LLMClient"]
