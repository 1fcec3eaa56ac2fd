"""
Conversational prose for the marketplace assistant.

Sends the chat history to an OpenAI-compatible chat completions endpoint
and returns the assistant text. Gateway failures never break a chat turn:
they degrade to a canned reply and the caller keeps its structured content.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import openai
from openai import AsyncOpenAI

from nautica.core.config import Settings

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """Você é o assistente virtual do NauticaMarket, um marketplace premium de embarcações náuticas no Brasil.

Seu papel:
- Ajudar usuários a encontrar a embarcação perfeita para suas necessidades
- Responder perguntas sobre tipos de embarcações (iates, veleiros, lanchas, jet skis, catamarãs, etc.)
- Auxiliar com informações sobre reservas, preços e disponibilidade
- Sugerir roteiros e experiências náuticas

Personalidade:
- Sofisticado mas acessível
- Entusiasta do mar e da náutica
- Prestativo e proativo em oferecer sugestões

Quando o usuário buscar embarcações:
1. Pergunte sobre data desejada, número de passageiros e preferências
2. Sugira opções adequadas ao perfil
3. Auxilie no processo de reserva

Nunca invente preços, disponibilidade ou políticas: esses dados vêm do sistema.
Sempre responda em português brasileiro."""

RATE_LIMITED_REPLY = "Limite de requisições excedido. Tente novamente em alguns segundos."
CREDITS_EXHAUSTED_REPLY = "Créditos esgotados no momento. Tente novamente mais tarde."
FALLBACK_REPLY = "Erro ao processar sua mensagem. Tente novamente."


class CompletionClient(Protocol):
    async def get_reply(
        self,
        messages: list[dict[str, str]],
        owner_scope_id: Optional[str] = None,
        context: Optional[str] = None,
    ) -> str:
        ...


class AIService:
    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self.model = settings.llm_model
        self._client = client

    def _get_client(self) -> Optional[AsyncOpenAI]:
        if self._client is None and self.settings.llm_api_key:
            self._client = AsyncOpenAI(
                api_key=self.settings.llm_api_key,
                base_url=self.settings.llm_base_url,
                timeout=self.settings.llm_timeout_seconds,
                max_retries=1,
            )
        return self._client

    def get_system_prompt(self, owner_scope_id: Optional[str] = None, context: Optional[str] = None) -> str:
        prompt = SYSTEM_PROMPT
        if owner_scope_id:
            prompt += (
                f"\n\nATENÇÃO: Você está na página de um proprietário específico (ID: {owner_scope_id}). "
                "Foque apenas nas embarcações deste proprietário. Não sugira embarcações de outros proprietários."
            )
        if context:
            prompt += f"\n\nCONTEXTO DO SISTEMA (use apenas estes dados):\n{context}"
        return prompt

    async def get_reply(
        self,
        messages: list[dict[str, str]],
        owner_scope_id: Optional[str] = None,
        context: Optional[str] = None,
    ) -> str:
        client = self._get_client()
        if client is None:
            logger.error("❌ LLM_API_KEY is not configured; replying with fallback text")
            return FALLBACK_REPLY

        payload: list[dict[str, Any]] = [
            {"role": "system", "content": self.get_system_prompt(owner_scope_id, context)}
        ]
        payload.extend(
            {"role": m["role"], "content": m["content"]}
            for m in messages
            if m.get("role") in ("user", "assistant") and m.get("content")
        )

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=payload,
                max_tokens=400,
                temperature=0.7,
            )
        except openai.RateLimitError:
            logger.warning("⚠️ LLM gateway rate limited")
            return RATE_LIMITED_REPLY
        except openai.APIStatusError as e:
            if e.status_code == 402:
                logger.error("❌ LLM gateway credits exhausted")
                return CREDITS_EXHAUSTED_REPLY
            logger.error(f"❌ LLM gateway error: status={e.status_code}")
            return FALLBACK_REPLY
        except openai.APIError as e:
            # Timeouts and connection failures
            logger.error(f"❌ LLM gateway error: {type(e).__name__}")
            return FALLBACK_REPLY

        text = response.choices[0].message.content if response.choices else None
        return (text or "").strip() or FALLBACK_REPLY
