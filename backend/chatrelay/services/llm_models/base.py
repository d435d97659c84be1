from abc import ABC, abstractmethod
from typing import Optional, Tuple
from langchain_core.language_models.chat_models import BaseChatModel

class LLMBaseModel(ABC):
    """
    A completion provider the relay can stream from.

    Subclasses list the substrings that identify their model names and
    build a LangChain chat model that emits tokens as they are generated.
    """

    name_markers: Tuple[str, ...] = ()

    def is_provider_for(self, model_name: str) -> bool:
        model_lower = model_name.lower()
        return any(marker in model_lower for marker in self.name_markers)

    @abstractmethod
    def configured_api_key(self) -> Optional[str]:
        """Key from settings, used when the caller passes none."""

    @abstractmethod
    def create_model(
        self,
        model_name: str,
        temperature: float,
        max_tokens: int,
        api_key: Optional[str] = None,
        **kwargs
    ) -> BaseChatModel:
        """Build the streaming chat model for `model_name`."""
