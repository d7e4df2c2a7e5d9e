# service container - everything a request handler needs, built once per app

import logging
from dataclasses import dataclass
from typing import Optional

from sahara.config import Settings
from sahara.services.aggregator import Aggregator
from sahara.services.audio_files import AudioFileStore
from sahara.services.chat_service import ChatService
from sahara.services.entry_store import EntryStore
from sahara.services.insight_pipeline import InsightPipeline
from sahara.services.providers import GoogleProviderAdapter, ProviderAdapter
from sahara.services.resource_service import ResourceService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    settings: Settings
    store: EntryStore
    provider: ProviderAdapter
    pipeline: InsightPipeline
    aggregator: Aggregator
    chat: ChatService
    resources: ResourceService
    audio: AudioFileStore


def build_services(settings: Settings, db, provider: Optional[ProviderAdapter] = None) -> Services:
    """wire the store, provider adapter and everything built on them"""
    provider = provider or GoogleProviderAdapter(settings)
    store = EntryStore(db, settings)
    pipeline = InsightPipeline(
        store,
        provider,
        workers=settings.ANALYSIS_WORKERS,
        queue_maxsize=settings.ANALYSIS_QUEUE_MAXSIZE,
    )
    resources = ResourceService(db)

    logger.info(f"Services built with provider '{provider.provider_name}'")
    return Services(
        settings=settings,
        store=store,
        provider=provider,
        pipeline=pipeline,
        aggregator=Aggregator(store),
        chat=ChatService(store, pipeline, provider, resources, settings),
        resources=resources,
        audio=AudioFileStore(settings),
    )
