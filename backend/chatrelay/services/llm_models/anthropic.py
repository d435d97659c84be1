from typing import Optional
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from .base import LLMBaseModel
from chatrelay.core.config import settings

class AnthropicModel(LLMBaseModel):
    """Claude models; the relay always requests a streamed reply."""

    name_markers = ('claude', 'anthropic')

    def configured_api_key(self) -> Optional[str]:
        return settings.ANTHROPIC_API_KEY

    def create_model(
        self,
        model_name: str,
        temperature: float,
        max_tokens: int,
        api_key: Optional[str] = None,
        **kwargs
    ) -> BaseChatModel:
        return ChatAnthropic(
            model=model_name,
            temperature=temperature,
            max_tokens=max_tokens,
            streaming=True,
            api_key=api_key or self.configured_api_key()
        )
