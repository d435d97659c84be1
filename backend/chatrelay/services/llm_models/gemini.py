from typing import Optional
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.language_models.chat_models import BaseChatModel
from .base import LLMBaseModel
from chatrelay.core.config import settings

class GeminiModel(LLMBaseModel):
    """
    Google Gemini models, the default provider.
    Gemini names its output limit `max_output_tokens`.
    """

    name_markers = ('gemini', 'google')

    def configured_api_key(self) -> Optional[str]:
        return settings.GOOGLE_API_KEY

    def create_model(
        self,
        model_name: str,
        temperature: float,
        max_tokens: int,
        api_key: Optional[str] = None,
        **kwargs
    ) -> BaseChatModel:
        return ChatGoogleGenerativeAI(
            model=model_name,
            temperature=temperature,
            max_output_tokens=max_tokens,
            google_api_key=api_key or self.configured_api_key()
        )
