from .contact_repository import ContactRepository, InMemoryContactRepository

__all__ = ["ContactRepository", "InMemoryContactRepository"]
