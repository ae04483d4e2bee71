from .state_store import AuthStateStore
from .token_store import TokenStore

__all__ = ["AuthStateStore", "TokenStore"]
