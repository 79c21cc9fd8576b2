from auth.dependencies import require_service_token
from auth.token_manager import ServiceIdentity, TokenManager

__all__ = ['ServiceIdentity', 'TokenManager', 'require_service_token']
