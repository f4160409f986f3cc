from knowbot.llm.provider.adapters.bedrock import BedrockProvider
from knowbot.llm.provider.adapters.openai import OpenAIProvider

__all__ = ["BedrockProvider", "OpenAIProvider"]
