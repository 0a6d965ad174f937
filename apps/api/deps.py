"""Request-scoped accessors for services built once in ``create_app``.

Routes depend on these instead of importing module globals, so tests can
swap any of them through ``app.state`` or ``app.dependency_overrides``.
"""
from fastapi import Request
from sqlalchemy.orm import sessionmaker

from libs.config import Settings
from libs.embed.queue import EmbeddingQueueProcessor
from libs.matching.engine import SimplifiedMatchingEngine


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_factory(request: Request) -> sessionmaker:
    factory = request.app.state.session_factory
    if factory is None:
        from libs.db.session import get_session_factory as default_factory

        factory = default_factory()
        request.app.state.session_factory = factory
    return factory


def get_matching_engine(request: Request) -> SimplifiedMatchingEngine:
    return request.app.state.matching_engine


def get_embedding_processor(request: Request) -> EmbeddingQueueProcessor:
    return request.app.state.embedding_processor
