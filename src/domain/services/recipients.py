"""Recipient resolution shared by both dispatch paths."""

from collections.abc import Sequence
from uuid import UUID

from domain.entities.profile import Profile
from domain.repositories.unit_of_work import IUnitOfWork


async def resolve_recipients(uow: IUnitOfWork, recipient_ids: Sequence[UUID]) -> list[Profile]:
    """Resolve stored recipient ids to active profiles with an address.

    Keeps the stored order and drops duplicates and ids that no longer
    resolve.
    """
    if not recipient_ids:
        return []

    profiles = await uow.profiles.get_many(recipient_ids)
    by_id = {p.id: p for p in profiles if p.is_active and p.email}

    resolved: list[Profile] = []
    seen: set[UUID] = set()
    for rid in recipient_ids:
        if rid in seen or rid not in by_id:
            continue
        seen.add(rid)
        resolved.append(by_id[rid])
    return resolved
