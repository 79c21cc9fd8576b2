from apps.api.main import app, create_app, lifespan, main

__all__ = ['app', 'create_app', 'lifespan', 'main']
