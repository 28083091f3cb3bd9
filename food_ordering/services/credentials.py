"""
Credential Store

Owns the ``identities`` table: registration, sign-in lookup and secret
verification. Secrets are hashed with argon2 through passlib before they are
written; the plaintext is never stored, logged or returned.

Registration and profile images:
    The image is written first and the identity row second. If the row cannot
    be committed, the image is deleted again, so a failed sign-up never leaves
    a file behind and a successful one never points at a missing file.
"""

import logging
from typing import Optional

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.errors import (
    DuplicateIdentity,
    InvalidCredentials,
    StoreFailure,
    ValidationError,
)
from food_ordering.models import Identity
from food_ordering.services.storage import UploadStorage, get_upload_storage

logger = logging.getLogger(__name__)


pwd = CryptContext(schemes=["argon2"], deprecated="auto")

# Verified against when the identifier is unknown, so a miss costs the same
# as a wrong secret.
_DUMMY_HASH = pwd.hash("not-a-real-secret")


async def hash_secret(secret: str) -> str:
    return await run_in_threadpool(pwd.hash, secret)


async def verify_secret_hash(secret: str, secret_hash: str) -> bool:
    return await run_in_threadpool(pwd.verify, secret, secret_hash)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class CredentialStore:
    """
    Identity persistence and secret checks for one database session.

    Example:
        >>> store = CredentialStore(db)
        >>> identity = await store.register("Ann", email="a@x.com", secret="pw1")
        >>> await store.authenticate("a@x.com", "pw1")
        <Identity #1 - Ann - a@x.com>
    """

    def __init__(self, db: AsyncSession, storage: Optional[UploadStorage] = None):
        self.db = db
        self.storage = storage or get_upload_storage()

    async def register(
        self,
        name: str,
        secret: str,
        mobile: Optional[str] = None,
        email: Optional[str] = None,
        profile_image: Optional[UploadFile] = None,
        is_admin: bool = False,
    ) -> Identity:
        """
        Create a new identity.

        Args:
            name: Display name
            secret: Plaintext password, hashed before it is stored
            mobile: Sign-in mobile number (optional if email given)
            email: Sign-in email address (optional if mobile given)
            profile_image: Uploaded avatar, stored alongside the record
            is_admin: Register into the admin pool

        Returns:
            Identity: The committed record

        Raises:
            ValidationError: Missing name/secret, no identifier, or bad image
            DuplicateIdentity: Mobile or email already registered
            StoreFailure: Database rejected the write
        """
        name = _clean(name)
        mobile = _clean(mobile)
        email = _clean(email)
        if email:
            email = email.lower()

        if not name:
            raise ValidationError("Name is required")
        if not secret:
            raise ValidationError("Password is required")
        if not mobile and not email:
            raise ValidationError("Either mobile or email is required")

        if await self._identifier_taken(mobile, email):
            logger.info(f"Sign-up rejected, identifier in use: {email or mobile}")
            raise DuplicateIdentity()

        image_path = None
        if profile_image is not None and profile_image.filename:
            image_path = await self.storage.save(profile_image)

        identity = Identity(
            name=name,
            mobile=mobile,
            email=email,
            password_hash=await hash_secret(secret),
            profile_image=image_path,
            is_admin=is_admin,
        )

        try:
            self.db.add(identity)
            await self.db.commit()
            await self.db.refresh(identity)
        except IntegrityError:
            # Lost a race with a concurrent sign-up for the same identifier
            await self.db.rollback()
            self.storage.discard(image_path)
            raise DuplicateIdentity()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.storage.discard(image_path)
            logger.exception(f"Error registering identity: {e}")
            raise StoreFailure("Error registering user")

        logger.info(f"Identity #{identity.id} registered (admin={is_admin})")
        return identity

    async def _identifier_taken(self, mobile: Optional[str], email: Optional[str]) -> bool:
        conditions = []
        if mobile:
            conditions.append(Identity.mobile == mobile)
        if email:
            conditions.append(Identity.email == email)

        result = await self.db.execute(select(Identity.id).where(or_(*conditions)).limit(1))
        return result.scalar_one_or_none() is not None

    async def find_by_sign_in_key(self, identifier: str) -> Optional[Identity]:
        """Look up an identity whose mobile or email equals ``identifier``."""
        identifier = _clean(identifier)
        if not identifier:
            return None

        result = await self.db.execute(
            select(Identity)
            .where(or_(Identity.email == identifier.lower(), Identity.mobile == identifier))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[Identity]:
        result = await self.db.execute(select(Identity).where(Identity.email == email))
        return result.scalar_one_or_none()

    async def verify_secret(self, identity: Identity, candidate: str) -> bool:
        """Compare a candidate secret against the stored hash."""
        if not candidate:
            return False
        return await verify_secret_hash(candidate, identity.password_hash)

    async def authenticate(self, identifier: str, secret: str, admin: bool = False) -> Identity:
        """
        Resolve sign-in credentials to an identity.

        Raises:
            InvalidCredentials: Unknown identifier, wrong secret, or a
                non-admin identity signing in to the admin pool
        """
        identity = await self.find_by_sign_in_key(identifier)

        if identity is None:
            await verify_secret_hash(secret or "", _DUMMY_HASH)
            raise InvalidCredentials()

        if not await self.verify_secret(identity, secret):
            logger.info(f"Sign-in failed for identity #{identity.id}")
            raise InvalidCredentials()

        if admin and not identity.is_admin:
            logger.info(f"Admin sign-in refused for identity #{identity.id}")
            raise InvalidCredentials()

        return identity
