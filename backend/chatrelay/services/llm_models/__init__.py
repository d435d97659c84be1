from .factory import LLMModelFactory

__all__ = ["LLMModelFactory"]
