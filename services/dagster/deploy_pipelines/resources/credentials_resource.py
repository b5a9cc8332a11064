"""Credential Resource - scoped credential resolution for each stage."""

import logging
import os
import re
from typing import Mapping

from dagster import ConfigurableResource
from pydantic import Field, ValidationError

from libs.models import (
    Credential,
    CredentialError,
    CredentialNotFoundError,
    StageName,
)

__all__ = ["EnvCredentialResource", "credential_env_key"]

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def credential_env_key(prefix: str, credential_id: str, field: str) -> str:
    """
    Environment key for one credential field.

    >>> credential_env_key("DEPLOY_CRED_", "deploy-server-key", "KEY_FILE")
    'DEPLOY_CRED_DEPLOY_SERVER_KEY_KEY_FILE'
    """
    normalized = _NON_ALNUM.sub("_", credential_id.upper())
    return f"{prefix}{normalized}_{field}"


def _parse_scopes(raw: str) -> frozenset[StageName]:
    scopes = set()
    for item in raw.split(","):
        item = item.strip().lower()
        if not item:
            continue
        try:
            scopes.add(StageName(item))
        except ValueError as e:
            raise CredentialError(f"unknown credential scope {item!r}") from e
    return frozenset(scopes)


class EnvCredentialResource(ConfigurableResource):
    """
    Resolves credentials from environment-like key/value bindings.

    For credential id `deploy-server-key` and the default prefix the keys are:
    - DEPLOY_CRED_DEPLOY_SERVER_KEY_KEY_FILE → private_key_path
    - DEPLOY_CRED_DEPLOY_SERVER_KEY_PASSPHRASE → passphrase
    - DEPLOY_CRED_DEPLOY_SERVER_KEY_PASSWORD → password
    - DEPLOY_CRED_DEPLOY_SERVER_KEY_USERNAME → username override
    - DEPLOY_CRED_DEPLOY_SERVER_KEY_SCOPES → comma list of stages (default: all)

    Explicit `bindings` take precedence over the process environment.
    Stages call resolve() with their own scope so a credential can be
    limited to e.g. transfer only.
    """

    prefix: str = Field("DEPLOY_CRED_", description="Environment key prefix")
    bindings: dict[str, str] = Field(
        {},
        description="Explicit bindings checked before os.environ",
    )

    def _lookup(self, key: str, environ: Mapping[str, str]) -> str | None:
        if key in self.bindings:
            return self.bindings[key]
        value = environ.get(key)
        return value if value else None

    def resolve(self, credential_id: str, scope: StageName) -> Credential:
        """
        Resolve a credential for one stage.

        Raises:
            CredentialNotFoundError: Nothing is bound to credential_id
            CredentialScopeError: The stage is not among the granted scopes
            CredentialError: The bindings are malformed
        """
        environ = os.environ

        def get(field: str) -> str | None:
            return self._lookup(credential_env_key(self.prefix, credential_id, field), environ)

        key_file = get("KEY_FILE")
        password = get("PASSWORD")
        if key_file is None and password is None:
            raise CredentialNotFoundError(
                f"no credential bound for {credential_id!r} "
                f"(expected {credential_env_key(self.prefix, credential_id, 'KEY_FILE')} "
                f"or {credential_env_key(self.prefix, credential_id, 'PASSWORD')})"
            )

        data: dict = {
            "credential_id": credential_id,
            "username": get("USERNAME"),
            "private_key_path": key_file,
            "passphrase": get("PASSPHRASE"),
            "password": password,
        }
        raw_scopes = get("SCOPES")
        if raw_scopes is not None:
            data["scopes"] = _parse_scopes(raw_scopes)

        try:
            credential = Credential(**data)
        except ValidationError as e:
            raise CredentialError(f"invalid credential {credential_id!r}: {e}") from e

        credential.require_scope(scope)
        logger.debug("Resolved credential %s for stage %s", credential_id, scope.value)
        return credential
