from typing import List, Optional
from langchain_core.language_models.chat_models import BaseChatModel
from .base import LLMBaseModel
from .gemini import GeminiModel
from .openai import OpenAIModel
from .anthropic import AnthropicModel

class LLMModelFactory:
    """
    Picks the provider strategy for a model name.
    Unknown names go to Gemini, the default provider.
    """

    def __init__(self):
        self.strategies: List[LLMBaseModel] = [
            GeminiModel(),
            OpenAIModel(),
            AnthropicModel()
        ]
        self.fallback: LLMBaseModel = self.strategies[0]

    def strategy_for(self, model_name: str) -> LLMBaseModel:
        for strategy in self.strategies:
            if strategy.is_provider_for(model_name):
                return strategy
        return self.fallback

    def create_llm(
        self,
        model_name: str,
        temperature: float,
        max_tokens: int,
        api_key: Optional[str] = None
    ) -> BaseChatModel:
        return self.strategy_for(model_name).create_model(
            model_name=model_name,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=api_key
        )
