from nautica.integrations.llm.ai_service import AIService, CompletionClient

__all__ = ["AIService", "CompletionClient"]
