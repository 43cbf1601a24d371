from .helpers import (
    create_access_token,
    decode_access_token,
    principal_from_payload,
    get_current_principal,
    require_principal,
)

__all__ = [
    "create_access_token",
    "decode_access_token",
    "principal_from_payload",
    "get_current_principal",
    "require_principal",
]
