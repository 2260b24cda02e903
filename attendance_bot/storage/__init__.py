"""Azure Table Storage repositories."""

from .conversations import ConversationStore
from .identity_map import IdentityMap, IdentityMapping, normalize_account_id
from .notify_state import NotificationKind, NotifyStateLedger
from .refresh_tokens import RefreshTokenStore
from .tables import TableStore

__all__ = [
    "ConversationStore",
    "IdentityMap",
    "IdentityMapping",
    "NotificationKind",
    "NotifyStateLedger",
    "RefreshTokenStore",
    "TableStore",
    "normalize_account_id",
]
