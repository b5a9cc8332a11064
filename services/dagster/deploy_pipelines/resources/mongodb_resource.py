"""MongoDB Resource - Deployment ledger operations."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import cached_property
from typing import Any, ClassVar, Dict

from dagster import ConfigurableResource
from pydantic import Field
from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from libs.models import (
    DeploymentRecord,
    DeploymentStatus,
    StageName,
)

__all__ = ["MongoDBResource"]


class MongoDBResource(ConfigurableResource):
    """
    Dagster resource for the MongoDB deployment ledger.

    One document per deploy_job run, keyed by dagster_run_id. It keeps
    all MongoDB interactions centralized so that ops can remain lightweight.
    """

    connection_string: str = Field(..., description="MongoDB connection URI")
    database: str = Field("deployments", description="MongoDB database name")

    DEPLOYMENTS: ClassVar[str] = "deployments"

    @cached_property
    def _client(self) -> MongoClient:
        return MongoClient(self.connection_string)

    def _get_db(self) -> Database:
        return self._client[self.database]

    def _get_collection(self, name: str) -> Collection:
        return self._get_db()[name]

    @staticmethod
    def _strip_object_id(doc: Dict) -> Dict:
        stripped = dict(doc)
        stripped.pop("_id", None)
        return stripped

    # ------------------------------------------------------------------
    # Deployment operations
    # ------------------------------------------------------------------

    def insert_deployment(self, record: DeploymentRecord) -> str:
        """
        Create the deployment document (upsert by dagster_run_id).

        Returns the ObjectId of the document as a string. Upsert ensures
        idempotency if the entry op is re-executed for the same run.
        """
        collection = self._get_collection(self.DEPLOYMENTS)
        # Enums as plain strings, timestamps as native datetimes
        doc = record.model_dump(mode="json")
        doc["started_at"] = record.started_at
        doc["completed_at"] = record.completed_at
        result = collection.update_one(
            {"dagster_run_id": record.dagster_run_id},
            {"$setOnInsert": doc},
            upsert=True,
        )
        if result.upserted_id:
            return str(result.upserted_id)
        existing = collection.find_one(
            {"dagster_run_id": record.dagster_run_id}, projection={"_id": 1}
        )
        return str(existing["_id"]) if existing else ""

    def mark_stage_complete(
        self,
        dagster_run_id: str,
        stage: StageName,
        **details: Any,
    ) -> None:
        """
        Record a finished stage and any stage outputs (commit_sha, launched_pid).
        """
        collection = self._get_collection(self.DEPLOYMENTS)
        update: Dict[str, Any] = {"$addToSet": {"completed_stages": stage.value}}
        fields = {k: v for k, v in details.items() if v is not None}
        if fields:
            update["$set"] = fields
        collection.update_one({"dagster_run_id": dagster_run_id}, update)

    def update_deployment_status(
        self,
        dagster_run_id: str,
        status: DeploymentStatus,
        *,
        error_message: str | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        """
        Update the status of an existing deployment document.
        """
        collection = self._get_collection(self.DEPLOYMENTS)
        update_doc: Dict[str, Any] = {"status": status.value}
        if status in (
            DeploymentStatus.SUCCESS,
            DeploymentStatus.FAILURE,
            DeploymentStatus.CANCELED,
        ):
            update_doc["completed_at"] = completed_at or datetime.now(timezone.utc)
        if error_message:
            update_doc["error_message"] = error_message

        collection.update_one({"dagster_run_id": dagster_run_id}, {"$set": update_doc})

    def get_deployment(self, dagster_run_id: str) -> DeploymentRecord | None:
        """
        Load a deployment record by dagster_run_id.
        """
        collection = self._get_collection(self.DEPLOYMENTS)
        document = collection.find_one({"dagster_run_id": dagster_run_id})
        if not document:
            return None
        return DeploymentRecord(**self._strip_object_id(document))

    def list_deployments(
        self,
        target_label: str | None = None,
        limit: int = 25,
    ) -> list[DeploymentRecord]:
        """
        Most recent deployments first, optionally for one target.
        """
        collection = self._get_collection(self.DEPLOYMENTS)
        query: Dict[str, Any] = {}
        if target_label:
            query["target_label"] = target_label
        cursor = collection.find(query).sort("started_at", DESCENDING).limit(limit)
        return [DeploymentRecord(**self._strip_object_id(doc)) for doc in cursor]
