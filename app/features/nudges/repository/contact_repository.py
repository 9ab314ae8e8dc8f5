"""
Contact store access for the nudge feature.

Contacts are owned by the surrounding record store. The refresh service
only needs to enumerate them, look one up, and hand back a contact whose
``last_reminded`` moved forward.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from app.features.nudges.domain.models import Contact


class ContactRepository(Protocol):
    async def list_contacts(self) -> list[Contact]: ...

    async def get_contact(self, contact_id: str) -> Contact | None: ...

    async def save_contact(self, contact: Contact) -> None: ...


class InMemoryContactRepository:
    """Insertion-ordered contact store; enumeration order is stable."""

    def __init__(self, contacts: Iterable[Contact] = ()):
        self._contacts: dict[str, Contact] = {c.contact_id: c for c in contacts}

    async def list_contacts(self) -> list[Contact]:
        return list(self._contacts.values())

    async def get_contact(self, contact_id: str) -> Contact | None:
        return self._contacts.get(contact_id)

    async def save_contact(self, contact: Contact) -> None:
        self._contacts[contact.contact_id] = contact

    async def delete_contact(self, contact_id: str) -> bool:
        return self._contacts.pop(contact_id, None) is not None
