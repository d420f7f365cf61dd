from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ruleindex.domain.models import QualityProfile


async def insert_profile(
    session: AsyncSession,
    *,
    kee: str,
    name: str,
    language: str,
    parent_kee: str | None = None,
) -> QualityProfile:
    profile = QualityProfile(kee=kee, name=name, language=language, parent_kee=parent_kee)
    session.add(profile)
    # Flush so callers can reference the generated id before commit.
    await session.flush()
    return profile


async def get_profile(session: AsyncSession, kee: str) -> QualityProfile | None:
    result = await session.execute(select(QualityProfile).where(QualityProfile.kee == kee))
    return result.scalar_one_or_none()
