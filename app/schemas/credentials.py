from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, SecretStr


class CredentialSetData(BaseModel):
    """
    Decrypted view of a credential set handed to platform adapters.

    Secret values are ``SecretStr`` so they print as '**********' in reprs,
    tracebacks and log lines; adapters call ``reveal`` at the point of use.
    """
    ref: int
    platform: str
    secrets: Dict[str, SecretStr] = {}

    def reveal(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.secrets.get(key)
        if value is None:
            return default
        return value.get_secret_value()

    def secret_values(self):
        return [v.get_secret_value() for v in self.secrets.values() if v.get_secret_value()]


class CredentialSetCreate(BaseModel):
    platform: str
    name: str
    secrets: Dict[str, str]


class CredentialSetRead(BaseModel):
    """Public view, secrets are reported by key only"""
    id: int
    owner_id: str
    platform: str
    name: str
    secret_keys: List[str]
    is_active: bool
    rotated_at: Optional[datetime] = None
    created_at: datetime
