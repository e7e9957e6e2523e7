# services.py
"""
Builds the Procedo object graph from settings. Tests build their own graph with
fakes and pass it to app.create_app().
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from case_repo import CaseRepository
from completion_invoker import CompletionInvoker
from db import get_session_factory
from document_classifier import DocumentClassifier
from document_store import LocalDocumentStore
from ingest import PdfTextExtractor
from llm_factory import load_provider
from llm_provider import LLMProvider
from orchestrator import AnalysisOrchestrator
from procedo_parameters import load_parameters
from progress import ProgressReporter
from prompt_builder import PromptBuilder
from rule_repo import RuleCache, RuleRepository, SqlRuleSource
from settings import settings
from worker import AnalysisQueue


@dataclass
class Services:
    cases: CaseRepository
    rules: RuleRepository
    documents: LocalDocumentStore
    orchestrator: AnalysisOrchestrator
    queue: AnalysisQueue
    session_factory: Optional[sessionmaker] = None


def build_services(
    session_factory: Optional[sessionmaker] = None,
    provider: Optional[LLMProvider] = None,
    extractor=None,
    documents: Optional[LocalDocumentStore] = None,
) -> Services:
    session_factory = session_factory or get_session_factory()
    provider = provider or load_provider()

    cases = CaseRepository(session_factory)
    rules = RuleRepository(SqlRuleSource(session_factory), RuleCache(settings.RULE_CACHE_TTL_SECONDS))
    orchestrator = AnalysisOrchestrator(
        cases=cases,
        rules=rules,
        classifier=DocumentClassifier(provider),
        prompt_builder=PromptBuilder(parameters=load_parameters(settings.PROCEDO_PARAMETERS_PATH)),
        invoker=CompletionInvoker(provider),
        extractor=extractor or PdfTextExtractor(),
        progress=ProgressReporter(cases),
        chain_timeout=settings.CHAIN_TIMEOUT_SECONDS,
    )
    return Services(
        cases=cases,
        rules=rules,
        documents=documents or LocalDocumentStore(),
        orchestrator=orchestrator,
        queue=AnalysisQueue(orchestrator),
        session_factory=session_factory,
    )
