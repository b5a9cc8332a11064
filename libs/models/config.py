# =============================================================================
# Configuration Models Module
# =============================================================================
# Provides Pydantic Settings models for all service configurations:
# - DeploySettings: Deployment target and source bindings
# - MongoSettings: MongoDB deployment ledger configuration
# =============================================================================

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .deployment import (
    DeploymentPlan,
    DeploymentRequest,
    DeployTarget,
    SourceSpec,
    TriggerSource,
)

__all__ = [
    "DeploySettings",
    "MongoSettings",
]


# =============================================================================
# Deploy Settings (Target + Source bindings)
# =============================================================================

class DeploySettings(BaseSettings):
    """
    Named deployment parameters supplied at run start.

    Maps environment variables with prefix "DEPLOY_":
    - DEPLOY_CREDENTIAL_ID → credential_id
    - DEPLOY_SERVER → server
    - DEPLOY_USER → user
    - DEPLOY_APP_DIR → app_dir
    - DEPLOY_REPO_URL → repo_url
    - DEPLOY_BRANCH → branch
    - DEPLOY_SSH_PORT → ssh_port
    - DEPLOY_APP_PORT → app_port
    - DEPLOY_PLAN_FILE → plan_file

    Attributes:
        credential_id: Identifier of the SSH credential
        server: Remote server address
        user: Remote user name
        app_dir: Remote application directory
        repo_url: Source repository URL
        branch: Branch to deploy (default: "main")
        ssh_port: Remote-shell port (default: 22)
        app_port: Application port probed after launch (default: 5000)
        plan_file: Optional JSON plan replacing the default plan
    """

    credential_id: str = Field(..., validation_alias="DEPLOY_CREDENTIAL_ID", description="SSH credential identifier")
    server: str = Field(..., validation_alias="DEPLOY_SERVER", description="Remote server address")
    user: str = Field(..., validation_alias="DEPLOY_USER", description="Remote user name")
    app_dir: str = Field(..., validation_alias="DEPLOY_APP_DIR", description="Remote application directory")
    repo_url: str = Field(..., validation_alias="DEPLOY_REPO_URL", description="Source repository URL")
    branch: str = Field("main", validation_alias="DEPLOY_BRANCH", description="Branch to deploy")
    ssh_port: int = Field(22, validation_alias="DEPLOY_SSH_PORT", description="SSH port")
    app_port: int = Field(5000, validation_alias="DEPLOY_APP_PORT", description="Application port")
    plan_file: Optional[str] = Field(None, validation_alias="DEPLOY_PLAN_FILE", description="JSON plan file")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore unrelated env vars from shared .env files
    )

    def target(self) -> DeployTarget:
        return DeployTarget(
            host=self.server,
            user=self.user,
            app_dir=self.app_dir,
            credential_id=self.credential_id,
            port=self.ssh_port,
        )

    def source(self, branch: Optional[str] = None) -> SourceSpec:
        return SourceSpec(repo_url=self.repo_url, branch=branch or self.branch)

    def plan(self) -> DeploymentPlan:
        """
        Load the plan file if configured, else the default plan.

        The configured app port always wins over the plan's readiness port.
        """
        plan = (
            DeploymentPlan.from_file(self.plan_file)
            if self.plan_file
            else DeploymentPlan.default()
        )
        readiness = plan.readiness.model_copy(update={"port": self.app_port})
        return plan.model_copy(update={"readiness": readiness})

    def to_request(
        self,
        trigger: TriggerSource,
        *,
        branch: Optional[str] = None,
        requested_by: Optional[str] = None,
    ) -> DeploymentRequest:
        """
        Build the immutable request for one run.

        Webhook, manual and poll triggers all go through here so they
        produce identical requests apart from trigger metadata.
        """
        return DeploymentRequest(
            target=self.target(),
            source=self.source(branch),
            plan=self.plan(),
            trigger=trigger,
            requested_by=requested_by,
        )


# =============================================================================
# MongoDB Settings (Deployment Ledger)
# =============================================================================

class MongoSettings(BaseSettings):
    """
    Configuration for MongoDB (deployment ledger).

    Maps environment variables with prefix "MONGO_":
    - MONGO_HOST → host
    - MONGO_PORT → port
    - MONGO_INITDB_ROOT_USERNAME → username
    - MONGO_INITDB_ROOT_PASSWORD → password
    - MONGO_DATABASE → database
    - MONGO_AUTH_SOURCE → auth_source

    Attributes:
        host: MongoDB host (default: "mongodb")
        port: MongoDB port (default: 27017)
        username: MongoDB username (maps from MONGO_INITDB_ROOT_USERNAME)
        password: MongoDB password (maps from MONGO_INITDB_ROOT_PASSWORD)
        database: Database name (default: "deployments")
        auth_source: Authentication source (default: "admin")
    """

    host: str = Field("mongodb", validation_alias="MONGO_HOST", description="MongoDB host")
    port: int = Field(27017, validation_alias="MONGO_PORT", description="MongoDB port")
    username: str = Field(..., validation_alias="MONGO_INITDB_ROOT_USERNAME", description="MongoDB username (maps from MONGO_INITDB_ROOT_USERNAME)")
    password: str = Field(..., validation_alias="MONGO_INITDB_ROOT_PASSWORD", description="MongoDB password (maps from MONGO_INITDB_ROOT_PASSWORD)")
    database: str = Field("deployments", validation_alias="MONGO_DATABASE", description="Database name")
    auth_source: str = Field("admin", validation_alias="MONGO_AUTH_SOURCE", description="Authentication source")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore unrelated env vars from shared .env files
    )

    @property
    def connection_string(self) -> str:
        """
        Build MongoDB connection URI.

        Format: mongodb://[username]:[password]@[host]:[port]/[database]?authSource=[auth_source]

        Returns:
            MongoDB connection URI string
        """
        return (
            f"mongodb://{self.username}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?authSource={self.auth_source}"
        )
