"""
Federated search HTTP API.

See api.app:create_app for the ASGI application factory.
"""
