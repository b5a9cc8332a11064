# =============================================================================
# MongoDB Service - Deployment Ledger Reads
# =============================================================================
# Service wrapper for MongoDB operations in the webapp.
# =============================================================================

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from app.config import get_settings


@dataclass
class DeploymentSummary:
    """Summary of a deployment for list views."""

    deployment_id: str
    dagster_run_id: str
    target_label: str
    branch: str
    trigger: str
    status: str
    completed_stages: list[str]
    started_at: datetime
    commit_sha: Optional[str] = None
    completed_at: Optional[datetime] = None


class MongoDBService:
    """Service for MongoDB operations."""

    DEPLOYMENTS = "deployments"

    def __init__(self) -> None:
        settings = get_settings()
        self._client = MongoClient(settings.mongo_connection_string)
        # Extract database name from connection string or use default
        self._db_name = self._extract_db_name(settings.mongo_connection_string)
        self._db: Database = self._client[self._db_name]

    @staticmethod
    def _extract_db_name(connection_string: str) -> str:
        """Extract database name from MongoDB connection string."""
        # Pattern: mongodb://.../<database>?...
        match = re.search(r"/([^/?]+)(\?|$)", connection_string.split("@")[-1])
        if match:
            return match.group(1)
        return "deployments"  # Default

    def _get_collection(self, name: str) -> Collection:
        return self._db[name]

    def ping(self) -> None:
        """Raise if MongoDB is unreachable."""
        self._client.admin.command("ping")

    @staticmethod
    def _to_summary(doc: dict) -> DeploymentSummary:
        return DeploymentSummary(
            deployment_id=doc.get("deployment_id", ""),
            dagster_run_id=doc.get("dagster_run_id", ""),
            target_label=doc.get("target_label", ""),
            branch=doc.get("branch", ""),
            trigger=doc.get("trigger", ""),
            status=doc.get("status", "unknown"),
            completed_stages=list(doc.get("completed_stages", [])),
            started_at=doc.get("started_at") or datetime.now(),
            commit_sha=doc.get("commit_sha"),
            completed_at=doc.get("completed_at"),
        )

    def list_deployments(
        self,
        status: Optional[str] = None,
        target_label: Optional[str] = None,
        limit: int = 25,
    ) -> list[DeploymentSummary]:
        """
        List deployments, most recent first.

        Args:
            status: Optional status filter (running, success, failure, canceled)
            target_label: Optional user@host:app_dir filter
            limit: Maximum number of results

        Returns:
            List of DeploymentSummary
        """
        collection = self._get_collection(self.DEPLOYMENTS)

        query = {}
        if status:
            query["status"] = status
        if target_label:
            query["target_label"] = target_label

        cursor = collection.find(query).sort("started_at", -1).limit(limit)
        return [self._to_summary(doc) for doc in cursor]

    def get_deployment(self, deployment_id: str) -> Optional[dict]:
        """
        Get the full deployment document by deployment_id.

        Returns:
            Deployment document (with _id as string) or None
        """
        collection = self._get_collection(self.DEPLOYMENTS)
        doc = collection.find_one({"deployment_id": deployment_id})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc


# Singleton instance
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get or create the MongoDB service singleton."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service
