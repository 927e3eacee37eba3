"""FastAPI dependency wiring for services; tests override the leaves."""
from __future__ import annotations

from functools import lru_cache
from uuid import UUID

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.db.deps import get_sessionmaker
from app.services.background import BackgroundTaskRunner
from app.services.chat_orchestrator import ChatOrchestrator
from app.services.conversation_store import ConversationStore
from app.services.day_generator import DayGenerator
from app.services.importance_classifier import ImportanceClassifier
from app.services.insights_service import InsightsService
from app.services.intent_detector import IntentDetector
from app.services.llm_client import LLMClient
from app.services.period_store import PeriodStore
from app.services.program_service import ProgramService


@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient.from_settings(settings)


@lru_cache
def get_background_runner() -> BackgroundTaskRunner:
    return BackgroundTaskRunner()


def get_period_store(session_factory: sessionmaker[Session] = Depends(get_sessionmaker)) -> PeriodStore:
    return PeriodStore(session_factory)


def get_conversation_store(
    session_factory: sessionmaker[Session] = Depends(get_sessionmaker),
) -> ConversationStore:
    return ConversationStore(session_factory, UUID(settings.ai_user_id))


def get_importance_classifier(llm: LLMClient = Depends(get_llm_client)) -> ImportanceClassifier:
    return ImportanceClassifier(llm)


def get_intent_detector(llm: LLMClient = Depends(get_llm_client)) -> IntentDetector:
    return IntentDetector(llm)


def get_day_generator(llm: LLMClient = Depends(get_llm_client)) -> DayGenerator:
    return DayGenerator(llm)


def get_program_service(
    store: PeriodStore = Depends(get_period_store),
    generator: DayGenerator = Depends(get_day_generator),
) -> ProgramService:
    return ProgramService(store, generator)


def get_chat_orchestrator(
    conversations: ConversationStore = Depends(get_conversation_store),
    classifier: ImportanceClassifier = Depends(get_importance_classifier),
    intent_detector: IntentDetector = Depends(get_intent_detector),
    programs: ProgramService = Depends(get_program_service),
    llm: LLMClient = Depends(get_llm_client),
    runner: BackgroundTaskRunner = Depends(get_background_runner),
) -> ChatOrchestrator:
    return ChatOrchestrator(
        conversations=conversations,
        classifier=classifier,
        intent_detector=intent_detector,
        programs=programs,
        llm=llm,
        runner=runner,
    )


def get_insights_service(
    conversations: ConversationStore = Depends(get_conversation_store),
    llm: LLMClient = Depends(get_llm_client),
) -> InsightsService:
    return InsightsService(conversations, llm)
