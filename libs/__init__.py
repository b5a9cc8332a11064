# =============================================================================
# Deployment Pipeline Shared Libraries
# =============================================================================
# This package contains shared libraries for the SSH Deployment Pipeline.
# See individual sub-packages for detailed documentation.
# =============================================================================

"""
Deployment pipeline shared libraries.

Sub-packages:
- models: Pydantic data models and schemas
- remote_scripts: Shell rendering for the remote bootstrap and launch
- readiness: HTTP readiness polling
- run_config: Dagster run config builder shared by sensors and the webapp
"""

__version__ = "0.1.0"
