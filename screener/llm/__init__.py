"""
screener/llm — remote classifier backends.

classify() on every adapter returns a ClassificationVerdict and never raises.
"""

from screener.llm.base import SYSTEM_PROMPT, ClassifierAdapter, parse_response
from screener.llm.gemini_adapter import GeminiAdapter
from screener.llm.ollama_adapter import OllamaAdapter

__all__ = [
    "SYSTEM_PROMPT",
    "ClassifierAdapter",
    "GeminiAdapter",
    "OllamaAdapter",
    "parse_response",
]
