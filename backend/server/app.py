"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Resolve the per-session collaborator factory
- Register routes
"""

from __future__ import annotations

import importlib

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.signaling.http_signaling import HttpSignalingClient
from config import AppConfig
from server.routes import register_routes
from session.gateway import CollaboratorFactory


def create_app(
    config: AppConfig | None = None,
    collaborator_factory: CollaboratorFactory | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config:
            Defaults to AppConfig.load_from_env().
        collaborator_factory:
            Builds the transport / device collaborators of one session.
            Defaults to the COLLABORATOR_FACTORY "module:callable" setting.
            Without either, /ws refuses sessions.
    """
    if config is None:
        config = AppConfig.load_from_env()

    if collaborator_factory is None and config.collaborator_factory:
        collaborator_factory = load_factory(config.collaborator_factory)

    app = FastAPI(title="Connection Coordinator API")

    app.state.config = config
    app.state.collaborator_factory = collaborator_factory

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    return app


def load_factory(reference: str) -> CollaboratorFactory:
    """
    Resolve a "package.module:callable" reference.

    Raises:
        ValueError if the reference is malformed or not callable.
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"COLLABORATOR_FACTORY must be 'module:callable', got {reference!r}")

    factory = getattr(importlib.import_module(module_name), attr, None)
    if not callable(factory):
        raise ValueError(f"COLLABORATOR_FACTORY {reference!r} is not callable")
    return factory


def build_signaling(config: AppConfig, session_id: str) -> HttpSignalingClient:
    """Signaling client configured from the environment, for use by factories."""
    return HttpSignalingClient(
        base_url=config.signaling_url,
        model=config.realtime_model,
        voice=config.realtime_voice,
        instructions=config.realtime_instructions,
        api_key=config.signaling_api_key,
        timeout_s=config.signaling_timeout_s,
        session_id=session_id,
    )
