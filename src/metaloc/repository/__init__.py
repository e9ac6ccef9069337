"""Repository collaborator interface and the Dataverse Web API client."""

from .base import MetadataRepository, Payload
from .dataverse import DataverseClient

__all__ = ["DataverseClient", "MetadataRepository", "Payload"]
