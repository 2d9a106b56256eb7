from .client import HubJobClient
from .memory import InMemoryJobService

__all__ = ["HubJobClient", "InMemoryJobService"]
