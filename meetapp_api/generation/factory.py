"""Wiring of generation services from settings."""

from typing import Optional

from sqlalchemy.orm import Session

from meetapp_api.generation.orchestrator import GenerationOrchestrator
from meetapp_api.generation.resume import GenerationResumer
from meetapp_api.generation.scheduler import GenerationScheduler
from meetapp_api.notifications.service import Notifier
from meetapp_api.pdf.merger import GhostscriptMergeEngine, PdfMerger, PypdfMergeEngine
from meetapp_api.pdf.page_counter import PageCounter
from meetapp_api.registry.client import RegistryClient
from meetapp_api.registry.ledger import RequestLedger
from meetapp_api.rendering.html import HtmlRenderer
from meetapp_api.settings import Settings, get_settings
from meetapp_api.storage.service import FileStorageService
from meetapp_api.storage.usage_cache import get_usage_cache


def build_orchestrator(db: Session, settings: Optional[Settings] = None) -> GenerationOrchestrator:
    settings = settings or get_settings()
    usage_cache = get_usage_cache(settings.redis_url, settings.storage_usage_cache_ttl_hours)
    return GenerationOrchestrator(
        db=db,
        storage=FileStorageService(db, settings, usage_cache=usage_cache),
        renderer=HtmlRenderer(),
        merger=PdfMerger(
            primary=PypdfMergeEngine(),
            fallback=GhostscriptMergeEngine(settings.ghostscript_path),
            prefer_toolchain=settings.prefer_ghostscript,
        ),
        page_counter=PageCounter(settings.ghostscript_path),
        registry=RegistryClient.from_settings(settings),
        ledger=RequestLedger(db),
        notifier=Notifier.from_url(settings.redis_url),
        scheduler=GenerationScheduler(),
        settings=settings,
    )


def build_resumer(db: Session, settings: Optional[Settings] = None) -> GenerationResumer:
    settings = settings or get_settings()
    return GenerationResumer(db, RequestLedger(db), GenerationScheduler(), settings)
