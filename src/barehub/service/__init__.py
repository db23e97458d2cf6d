"""Service layer - Business logic orchestration.

This module contains service classes that orchestrate business logic:
- RepositoryService: Filesystem lifecycle sequenced with repository records
- AuthorizedKeysFile: SSH key registration for the git service account
- initialize_service: Service construction from configuration
"""

from barehub.service.repository import RepositoryService
from barehub.service.ssh_keys import AuthorizedKeysFile
from barehub.service.stores import initialize_service

__all__ = [
    "AuthorizedKeysFile",
    "RepositoryService",
    "initialize_service",
]
