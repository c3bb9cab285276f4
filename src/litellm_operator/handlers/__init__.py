"""Handler modules for CRD resources.

Nothing registers on import; ``litellm_operator.main.setup`` registers the
handlers explicitly.
"""

from .key import KeyExternal
from .provider_config import ProviderConfigHandler, register_provider_config_handlers
from .team import TeamExternal
from .watch import register_managed_watch

__all__ = [
    "KeyExternal",
    "TeamExternal",
    "ProviderConfigHandler",
    "register_provider_config_handlers",
    "register_managed_watch",
]
