"""Feature services built on the RPC transport."""

from notebooklm_wire.services.artifacts import ArtifactService
from notebooklm_wire.services.chat import ChatService

__all__ = ["ArtifactService", "ChatService"]
