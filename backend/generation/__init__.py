from .llm import TextGenerator, clean_response, fallback_response
from .prompts import PromptEngine

__all__ = [
    "PromptEngine",
    "TextGenerator",
    "clean_response",
    "fallback_response",
]
