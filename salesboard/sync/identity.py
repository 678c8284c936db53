"""Identity resolution for free-text people names in sheet rows.

Setter/closer names become profile ids; lead names/emails become lead ids.
Missing people are created on the fly. Creation is serialized per key with an
in-process lock; the unique ``profile.email`` constraint backs that up across
processes.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
import weakref

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import PersistenceError
from ..models.lead import Lead
from ..models.profile import Profile
from .transforms import is_placeholder

logger = logging.getLogger(__name__)


def _clean_name(name: str | None) -> str | None:
    if name is None or is_placeholder(name):
        return None
    cleaned = " ".join(name.split())
    return cleaned or None


def placeholder_email(full_name: str, domain: str | None = None) -> str:
    """Deterministic synthetic email: 'Sam O'Neil' -> 'sam.o.neil@<domain>'."""
    slug = re.sub(r"[^a-z0-9]+", ".", full_name.lower()).strip(".") or "unknown"
    return f"{slug}@{domain or settings.placeholder_email_domain}"


class IdentityResolver:
    """Resolves people names to ids, creating placeholders when absent.

    One instance is shared by every connection sync in the process so that the
    per-key locks actually serialize concurrent creators.
    """

    def __init__(self, placeholder_domain: str | None = None):
        self.placeholder_domain = placeholder_domain or settings.placeholder_email_domain
        # Entries vanish once no resolution holds or awaits the lock.
        self._locks: weakref.WeakValueDictionary[tuple, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, key: tuple) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _find_profile(self, db: AsyncSession, name: str) -> Profile | None:
        stmt = (
            select(Profile)
            .where(func.lower(Profile.full_name) == name.lower())
            .order_by(Profile.is_placeholder, Profile.created_at)
            .limit(1)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def resolve(self, db: AsyncSession, full_name: str | None, role: str) -> uuid.UUID | None:
        """Profile id for ``full_name``; None when the cell is empty or a placeholder."""
        name = _clean_name(full_name)
        if name is None:
            return None

        async with self._lock_for(("profile", name.lower(), role)):
            existing = await self._find_profile(db, name)
            if existing is not None:
                return existing.id

            email = placeholder_email(name, self.placeholder_domain)
            profile = Profile(email=email, full_name=name, role=role, is_placeholder=True)
            db.add(profile)
            try:
                await db.commit()
            except IntegrityError:
                # Another process created it first
                await db.rollback()
                stmt = select(Profile).where(Profile.email == email)
                existing = (await db.execute(stmt)).scalar_one_or_none() or await self._find_profile(db, name)
                if existing is None:
                    raise PersistenceError(f"Could not create or find profile for {name!r}")
                return existing.id

            logger.info("Created placeholder %s profile for %r", role, name)
            return profile.id

    async def resolve_lead(
        self,
        db: AsyncSession,
        name: str | None,
        email: str | None,
        phone: str | None = None,
        create: bool = True,
    ) -> uuid.UUID | None:
        """Lead id by email (case-insensitive), then by name; optionally create."""
        name = _clean_name(name)
        email = (email or "").strip().lower() or None
        if name is None and email is None:
            return None

        async with self._lock_for(("lead", email or name.lower())):
            if email:
                stmt = select(Lead).where(func.lower(Lead.email) == email).limit(1)
                lead = (await db.execute(stmt)).scalar_one_or_none()
                if lead is not None:
                    return lead.id
            if name:
                stmt = select(Lead).where(func.lower(Lead.name) == name.lower()).limit(1)
                lead = (await db.execute(stmt)).scalar_one_or_none()
                if lead is not None:
                    return lead.id
            if not create:
                return None

            lead = Lead(name=name, email=email, phone=phone, status="new", source="other")
            db.add(lead)
            await db.commit()
            return lead.id
