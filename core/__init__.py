from core.errors import (ConfigurationError, DependencyFailure, FatalError,
                         GatewayError, InvalidArgument, NotFound,
                         ServiceUnavailable, Unauthenticated, Unauthorized,)
from core.settings import GatewaySettings, load_settings
from core.state import ServiceState

__all__ = ['ConfigurationError', 'DependencyFailure', 'FatalError',
           'GatewayError', 'GatewaySettings', 'InvalidArgument', 'NotFound',
           'ServiceUnavailable', 'Unauthenticated', 'Unauthorized',
           'ServiceState', 'load_settings']
