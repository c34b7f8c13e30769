# app/services/credential_vault.py
"""
Credential Vault

Stores per-owner platform secrets and hands them out by reference. Nothing
outside this module reads ``CredentialSet.secrets`` directly; integrations
only keep the credential id.

Encryption at rest is not handled here; the database column is expected to
sit on encrypted storage.
"""

import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import CredentialNotFoundError
from app.core.utils import utcnow
from app.database import async_session
from app.models.credential_set import CredentialSet
from app.schemas.credentials import CredentialSetData

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Secrets shorter than this are not worth scrubbing and would mangle ordinary words
MIN_REDACT_LENGTH = 4


def redact(text: Optional[str], secrets: Iterable[str]) -> Optional[str]:
    """Replace every occurrence of any secret value in ``text``."""
    if not text:
        return text
    # Longest first so a secret that contains another is removed whole
    for secret in sorted({s for s in secrets if s and len(s) >= MIN_REDACT_LENGTH}, key=len, reverse=True):
        text = text.replace(secret, REDACTED)
    return text


class CredentialVault:
    def __init__(self, session_factory: async_sessionmaker = async_session):
        self.session_factory = session_factory

    async def get(self, credential_id: int) -> CredentialSetData:
        """
        Resolve a credential reference.

        Raises:
            CredentialNotFoundError: unknown id or the set has been deactivated
        """
        async with self.session_factory() as session:
            credential = await session.get(CredentialSet, credential_id)
            if credential is None or not credential.is_active:
                raise CredentialNotFoundError(f"Credential set {credential_id} not found or inactive")
            return self._to_data(credential)

    async def store(self, owner_id: str, platform: str, name: str, secrets: Dict[str, str],
                    session: Optional[AsyncSession] = None) -> CredentialSet:
        """
        Create a credential set, or replace the secrets of an existing one with
        the same (platform, name, owner).

        When ``session`` is given the row is added to it and flushed but not
        committed, so callers can bundle it with other writes.
        """
        if session is not None:
            return await self._store(session, owner_id, platform, name, secrets)
        async with self.session_factory() as own_session:
            credential = await self._store(own_session, owner_id, platform, name, secrets)
            await own_session.commit()
            return credential

    async def _store(self, session: AsyncSession, owner_id: str, platform: str, name: str,
                     secrets: Dict[str, str]) -> CredentialSet:
        stmt = select(CredentialSet).where(
            CredentialSet.owner_id == owner_id,
            CredentialSet.platform == platform,
            CredentialSet.name == name,
        )
        credential = (await session.execute(stmt)).scalar_one_or_none()
        if credential is None:
            credential = CredentialSet(owner_id=owner_id, platform=platform, name=name,
                                       secrets=dict(secrets), is_active=True)
            session.add(credential)
            logger.info(f"Stored new {platform} credential set '{name}' for owner {owner_id}")
        else:
            credential.secrets = dict(secrets)
            credential.is_active = True
            credential.rotated_at = utcnow()
            logger.info(f"Replaced secrets of {platform} credential set '{name}' for owner {owner_id}")
        await session.flush()
        return credential

    async def rotate(self, credential_id: int, secrets: Dict[str, str]) -> CredentialSetData:
        """Replace secrets in place; integrations pointing at the id pick them up on their next run."""
        async with self.session_factory() as session:
            credential = await session.get(CredentialSet, credential_id)
            if credential is None:
                raise CredentialNotFoundError(f"Credential set {credential_id} not found")
            credential.secrets = dict(secrets)
            credential.rotated_at = utcnow()
            await session.commit()
            logger.info(f"Rotated credential set {credential_id}")
            return self._to_data(credential)

    async def deactivate(self, credential_id: int) -> None:
        async with self.session_factory() as session:
            credential = await session.get(CredentialSet, credential_id)
            if credential is None:
                raise CredentialNotFoundError(f"Credential set {credential_id} not found")
            credential.is_active = False
            await session.commit()
            logger.info(f"Deactivated credential set {credential_id}")

    @staticmethod
    def redact(text: Optional[str], credentials: Optional[CredentialSetData]) -> Optional[str]:
        if credentials is None:
            return text
        return redact(text, credentials.secret_values())

    @staticmethod
    def _to_data(credential: CredentialSet) -> CredentialSetData:
        return CredentialSetData(
            ref=credential.id,
            platform=credential.platform,
            secrets={k: str(v) for k, v in (credential.secrets or {}).items() if v is not None},
        )
