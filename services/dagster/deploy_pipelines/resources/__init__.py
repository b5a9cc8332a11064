"""Dagster Resources - External Service Connections."""

from .credentials_resource import EnvCredentialResource
from .git_resource import GitResource
from .mongodb_resource import MongoDBResource
from .ssh_resource import SSHResource

__all__ = [
    "EnvCredentialResource",
    "GitResource",
    "MongoDBResource",
    "SSHResource",
]
