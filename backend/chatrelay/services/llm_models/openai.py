from typing import Optional
from langchain_openai import ChatOpenAI
from langchain_core.language_models.chat_models import BaseChatModel
from .base import LLMBaseModel
from chatrelay.core.config import settings

class OpenAIModel(LLMBaseModel):
    """GPT and o-series models through the OpenAI API."""

    name_markers = ('gpt', 'o1-', 'o3-', 'openai')

    def configured_api_key(self) -> Optional[str]:
        return settings.OPENAI_API_KEY

    def create_model(
        self,
        model_name: str,
        temperature: float,
        max_tokens: int,
        api_key: Optional[str] = None,
        **kwargs
    ) -> BaseChatModel:
        return ChatOpenAI(
            model=model_name,
            temperature=temperature,
            max_tokens=max_tokens,
            streaming=True,
            api_key=api_key or self.configured_api_key()
        )
