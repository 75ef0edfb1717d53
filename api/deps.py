"""
FastAPI dependency injection providers.

Centralizes dependencies (DI) to keep endpoints decoupled from global imports.
The app factory stores the shared Elasticsearch client and the settings on
``app.state``; endpoints receive them through these providers.
"""

from elasticsearch import Elasticsearch
from fastapi import Request

from config import Config
from config import config as global_config


def get_settings(request: Request) -> Config:
    """
    FastAPI dependency to provide Config.

    Returns:
        Config: The settings the app was created with, or the global configuration.
    """
    return getattr(request.app.state, "settings", None) or global_config


def get_es_client(request: Request) -> Elasticsearch:
    """
    FastAPI dependency to provide the shared Elasticsearch client.

    Returns:
        Elasticsearch: Client created (or injected) in create_app. Connection
        pooling is handled by the client, so one instance serves all requests.
    """
    return request.app.state.es_client
