"""Per-message chat pipeline: persist, classify, detect intent, dispatch program work, reply."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date
from time import perf_counter
from typing import Any, Dict, List, Optional
from uuid import UUID

import httpx

from app.core.config import settings
from app.observability.metrics import elapsed_ms, log_metric
from app.observability.tracing import annotate, trace
from app.services.agents import CATCH_ALL_AGENT, is_program_capable
from app.services.background import BackgroundTaskRunner
from app.services.conversation_store import BaseContext, ChatMessage, ConversationStore
from app.services.importance_classifier import ImportanceClassifier, ImportanceResult, classify_with_retry
from app.services.intent_detector import IntentDetector, IntentResult, no_intent
from app.services.llm_client import LLMClient
from app.services.program_dates import utc_today
from app.services.program_service import ProgramService
from app.services.prompts import BASE_SYSTEM_PROMPT, OUT_OF_SCOPE_GUIDE, TRAINING_PROGRAM_GUIDE

logger = logging.getLogger(__name__)

REPLY_TEMPERATURE = 0.3
REPLY_MAX_TOKENS = 500
FALLBACK_REPLY = "Sorry, I had trouble replying."
CALLBACK_TIMEOUT_SECONDS = 60.0

_PROGRAM_ASK_PATTERNS = (
    re.compile(r"\b(program|plan|routine|split|template|schedule)\b"),
    re.compile(r"\bweek\s*\d\b"),
    re.compile(r"\b\d+\s*-?\s*weeks?\b"),
)


def looks_like_program_ask(text: str) -> bool:
    lowered = (text or "").lower()
    return any(pattern.search(lowered) for pattern in _PROGRAM_ASK_PATTERNS)


def resolve_program_agent(intent_agent: Optional[str], classifier_agent: Optional[str]) -> str:
    """Prefer the intent detector's agent, then the classifier's; otherwise the catch-all."""
    if is_program_capable(intent_agent):
        return intent_agent  # type: ignore[return-value]
    if is_program_capable(classifier_agent):
        return classifier_agent  # type: ignore[return-value]
    return CATCH_ALL_AGENT


def decide_program_action(intent: IntentResult, agent: str, threshold: float) -> str:
    if intent.confidence < threshold or not is_program_capable(agent):
        return "none"
    if intent.action in ("create", "change"):
        return intent.action
    return "none"


def build_system_prompt(text: str, topic: str, agent: str) -> str:
    prompt = BASE_SYSTEM_PROMPT
    if "Training" in (topic, agent) or looks_like_program_ask(text):
        prompt += TRAINING_PROGRAM_GUIDE
    if topic == CATCH_ALL_AGENT and agent == CATCH_ALL_AGENT:
        prompt += OUT_OF_SCOPE_GUIDE
    return prompt


def build_reply_messages(
    system_prompt: str,
    topic_slice: List[ChatMessage],
    context: BaseContext,
) -> List[ChatMessage]:
    return [{"role": "system", "content": system_prompt}, *topic_slice, *context.messages]


@dataclass
class ChatTurn:
    reply: str
    meta: Dict[str, Any]


class ChatOrchestrator:
    def __init__(
        self,
        *,
        conversations: ConversationStore,
        classifier: ImportanceClassifier,
        intent_detector: IntentDetector,
        programs: ProgramService,
        llm: LLMClient,
        runner: BackgroundTaskRunner,
        reply_model: str | None = None,
        confidence_threshold: float | None = None,
        change_callback_url: str | None = None,
    ) -> None:
        self.conversations = conversations
        self.classifier = classifier
        self.intent_detector = intent_detector
        self.programs = programs
        self.llm = llm
        self.runner = runner
        self.reply_model = reply_model or settings.reply_model
        self.confidence_threshold = (
            settings.intent_confidence_threshold if confidence_threshold is None else confidence_threshold
        )
        self.change_callback_url = (
            change_callback_url if change_callback_url is not None else settings.program_change_callback_url
        )

    @property
    def ai_user_id(self) -> UUID:
        return self.conversations.ai_user_id

    async def handle_message(self, human_id: UUID, text: str, *, today: date | None = None) -> ChatTurn:
        today = today or utc_today()
        start = perf_counter()
        with trace("chat.turn", metadata={"chars": len(text)}, user_id=str(human_id)) as span:
            await self.conversations.assert_human(human_id)
            await self.conversations.ensure_ai_user()
            inbound = await self.conversations.insert_message(human_id, self.ai_user_id, text)

            importance, context, intent = await asyncio.gather(
                classify_with_retry(self.classifier.classify, text),
                self.conversations.fetch_base_context(human_id),
                self._detect_intent(text, today),
            )
            self.runner.spawn(
                self.conversations.patch_classification(
                    inbound.id, important=importance.important, agent_type=importance.agent_type
                ),
                name="patch_inbound_classification",
            )

            topic = importance.agent_type
            topic_slice = await self.conversations.fetch_topic_slice(human_id, topic, context.oldest_ts, context.ids)

            agent = resolve_program_agent(intent.agent, importance.agent_type)
            program_action = self._dispatch_program_action(human_id, agent, intent, text, today)

            messages = build_reply_messages(build_system_prompt(text, topic, agent), topic_slice, context)
            reply = await self.llm.complete_text(
                model=self.reply_model,
                messages=messages,
                temperature=REPLY_TEMPERATURE,
                max_tokens=REPLY_MAX_TOKENS,
                label="reply",
            )
            reply = reply.strip() or FALLBACK_REPLY
            reply_row = await self.conversations.insert_message(self.ai_user_id, human_id, reply)

            self.runner.spawn(self._classify_reply(reply_row.id, reply), name="classify_reply")

            annotate(
                span,
                topic=topic,
                agent=agent,
                program_action=program_action,
                context_messages=len(messages) - 1,
            )
            log_metric("chat.turn.latency_ms", elapsed_ms(start), {"program_action": program_action})
            return ChatTurn(
                reply=reply,
                meta={
                    "user_importance": importance.as_dict(),
                    "intent": intent.as_dict(),
                    "program_action": {"action": program_action, "agent": agent},
                },
            )

    async def _detect_intent(self, text: str, today: date) -> IntentResult:
        try:
            return await self.intent_detector.detect_intent(text, today)
        except Exception:
            logger.exception("Intent detection raised; continuing without program intent")
            return no_intent()

    def _dispatch_program_action(
        self,
        human_id: UUID,
        agent: str,
        intent: IntentResult,
        text: str,
        today: date,
    ) -> str:
        action = decide_program_action(intent, agent, self.confidence_threshold)
        if action == "create":
            self.runner.spawn(
                self.programs.create_from_intent(human_id, agent, intent, text, today=today),
                name="program_create",
            )
        elif action == "change":
            if self.change_callback_url:
                coro = self._post_change(human_id, agent, intent, text, today)
            else:
                coro = self.programs.change_from_intent(human_id, agent, intent, text, today=today)
            self.runner.spawn(coro, name="program_change")
        if action != "none":
            logger.info("Dispatched program %s for %s (confidence %.2f)", action, agent, intent.confidence)
        return action

    async def _post_change(self, human_id: UUID, agent: str, intent: IntentResult, text: str, today: date) -> None:
        request = await self.programs.change_request_from_intent(human_id, agent, intent, text, today=today)
        if request is None:
            return
        program_id, body = request
        url = f"{self.change_callback_url.rstrip('/')}/programs/{program_id}/change"
        async with httpx.AsyncClient(timeout=CALLBACK_TIMEOUT_SECONDS) as client:
            response = await client.post(url, json=body)
            response.raise_for_status()
        logger.info("Program change for %s posted to %s", program_id, url)

    async def _classify_reply(self, message_id: int, reply: str) -> ImportanceResult:
        result = await classify_with_retry(self.classifier.classify, reply)
        await self.conversations.patch_classification(
            message_id, important=result.important, agent_type=result.agent_type
        )
        return result
