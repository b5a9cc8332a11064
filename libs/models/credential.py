# =============================================================================
# Credential Model
# =============================================================================
# A resolved remote-transport credential, scoped to the stages allowed to use it.
# =============================================================================

"""Scoped credential model handed to each stage by the credential resolver."""

from typing import Optional

from pydantic import BaseModel, Field, SecretStr, model_validator

from .run import StageName

__all__ = [
    "Credential",
    "CredentialError",
    "CredentialNotFoundError",
    "CredentialScopeError",
]


class CredentialError(Exception):
    """Base class for credential resolution failures."""


class CredentialNotFoundError(CredentialError):
    """No credential is bound to the requested identifier."""


class CredentialScopeError(CredentialError):
    """The credential exists but is not granted to the requesting stage."""


class Credential(BaseModel):
    """
    Authenticated transport credential.

    Secret values are wrapped in SecretStr so they never appear in reprs or
    Dagster logs.

    Attributes:
        credential_id: Identifier the credential was resolved from
        username: Optional user override (defaults to the target user)
        private_key_path: Path to a private key file
        passphrase: Passphrase for the private key
        password: Password for password authentication
        scopes: Stages allowed to use this credential
    """

    credential_id: str
    username: Optional[str] = None
    private_key_path: Optional[str] = None
    passphrase: Optional[SecretStr] = None
    password: Optional[SecretStr] = None
    scopes: frozenset[StageName] = Field(
        default_factory=lambda: frozenset(StageName),
        description="Stages allowed to use this credential",
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_secret_present(self) -> "Credential":
        if not self.private_key_path and self.password is None:
            raise ValueError(
                f"credential {self.credential_id!r} needs a private key path or a password"
            )
        return self

    def allows(self, stage: StageName) -> bool:
        return stage in self.scopes

    def require_scope(self, stage: StageName) -> "Credential":
        """Return self if the stage is granted, else raise CredentialScopeError."""
        if not self.allows(stage):
            granted = sorted(s.value for s in self.scopes)
            raise CredentialScopeError(
                f"credential {self.credential_id!r} is not granted to stage "
                f"{stage.value!r} (granted: {granted})"
            )
        return self
