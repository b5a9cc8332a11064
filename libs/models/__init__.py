# =============================================================================
# Data Models Library
# =============================================================================
# Pydantic models and schemas for the SSH Deployment Pipeline.
# =============================================================================

"""
Data models for the deployment pipeline.

This library provides:
- Deployment: target, source, versioned plan and request
- Run: deployment ledger document and stage names
- Credential: scoped transport credential
- Configuration models
"""

__version__ = "0.1.0"

# Deployment models
from .deployment import (
    PLAN_VERSION,
    DeployTarget,
    DeploymentPlan,
    DeploymentRequest,
    ExistingProcessPolicy,
    LaunchSpec,
    ReadinessCheck,
    SourceSpec,
    TransferSpec,
    TriggerSource,
    generate_deployment_id,
)

# Run models
from .run import (
    STAGE_ORDER,
    DeploymentRecord,
    DeploymentStatus,
    StageName,
)

# Credential models
from .credential import (
    Credential,
    CredentialError,
    CredentialNotFoundError,
    CredentialScopeError,
)

# Configuration models
from .config import (
    DeploySettings,
    MongoSettings,
)

__all__ = [
    # Deployment models
    "PLAN_VERSION",
    "DeployTarget",
    "DeploymentPlan",
    "DeploymentRequest",
    "ExistingProcessPolicy",
    "LaunchSpec",
    "ReadinessCheck",
    "SourceSpec",
    "TransferSpec",
    "TriggerSource",
    "generate_deployment_id",
    # Run models
    "STAGE_ORDER",
    "DeploymentRecord",
    "DeploymentStatus",
    "StageName",
    # Credential models
    "Credential",
    "CredentialError",
    "CredentialNotFoundError",
    "CredentialScopeError",
    # Configuration models
    "DeploySettings",
    "MongoSettings",
]
