# =============================================================================
# Dagster Service - GraphQL API Operations
# =============================================================================
# Service wrapper for Dagster GraphQL operations in the webapp.
# =============================================================================

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx

from app.config import get_settings
from libs.models import DeploymentRequest
from libs.run_config import (
    DEPLOY_JOB_NAME,
    TAG_DEPLOY_TARGET,
    build_deploy_run_config,
    build_deploy_tags,
)

# Dagster run statuses that still hold the target
ACTIVE_STATUSES = ("QUEUED", "NOT_STARTED", "STARTING", "STARTED")


class DagsterLaunchError(RuntimeError):
    """Dagster rejected a launchRun mutation."""


@dataclass
class RunSummary:
    """Summary of a Dagster run for list views."""

    run_id: str
    status: str
    job_name: str
    started_at: Optional[datetime]
    ended_at: Optional[datetime]
    tags: dict


def _timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value)


class DagsterService:
    """Service for Dagster GraphQL operations."""

    def __init__(self) -> None:
        settings = get_settings()
        self._graphql_url = settings.dagster_graphql_url
        self._location_name = settings.dagster_location_name
        self._repository_name = settings.dagster_repository_name

    def _execute_query(self, query: str, variables: Optional[dict] = None) -> dict:
        """Execute a GraphQL query."""
        response = httpx.post(
            self._graphql_url,
            json={"query": query, "variables": variables or {}},
            timeout=30.0,
        )
        response.raise_for_status()
        result = response.json()

        if "errors" in result:
            raise RuntimeError(f"GraphQL error: {result['errors']}")

        return result.get("data", {})

    def ping(self) -> str:
        """Return the Dagster version; raises if the API is unreachable."""
        data = self._execute_query("query Version { version }")
        return data.get("version", "")

    def launch_deploy_run(self, request: DeploymentRequest) -> str:
        """
        Launch deploy_job for a request.

        Returns:
            The Dagster run ID

        Raises:
            DagsterLaunchError: If Dagster rejects the launch
        """
        mutation = """
        mutation LaunchRun(
            $repositoryLocationName: String!
            $repositoryName: String!
            $jobName: String!
            $runConfigData: RunConfigData
            $executionMetadata: ExecutionMetadata
        ) {
            launchRun(
                executionParams: {
                    selector: {
                        repositoryLocationName: $repositoryLocationName
                        repositoryName: $repositoryName
                        pipelineName: $jobName
                    }
                    runConfigData: $runConfigData
                    executionMetadata: $executionMetadata
                }
            ) {
                ... on LaunchRunSuccess { run { runId status } }
                ... on PipelineNotFoundError { message }
                ... on RunConfigValidationInvalid { errors { message } }
                ... on PythonError { message }
            }
        }
        """

        tags = [
            {"key": key, "value": value}
            for key, value in build_deploy_tags(request).items()
        ]
        variables = {
            "repositoryLocationName": self._location_name,
            "repositoryName": self._repository_name,
            "jobName": DEPLOY_JOB_NAME,
            "runConfigData": build_deploy_run_config(request),
            "executionMetadata": {"tags": tags},
        }

        data = self._execute_query(mutation, variables)
        launch = data.get("launchRun", {})

        if "run" in launch:
            return launch["run"]["runId"]
        if "errors" in launch:
            messages = "; ".join(e.get("message", "") for e in launch["errors"])
            raise DagsterLaunchError(f"Invalid run config: {messages}")
        raise DagsterLaunchError(launch.get("message", "Unknown launch error"))

    def get_runs(
        self,
        status: Optional[str] = None,
        limit: int = 25,
        *,
        statuses: Optional[list[str]] = None,
        job_name: Optional[str] = None,
        tags: Optional[dict[str, str]] = None,
    ) -> list[RunSummary]:
        """
        Get list of Dagster runs.

        Args:
            status: Optional single status filter (STARTED, SUCCESS, FAILURE, etc.)
            limit: Maximum number of results
            statuses: Optional list of statuses (combined with status)
            job_name: Optional job name filter
            tags: Optional exact-match tag filter

        Returns:
            List of RunSummary
        """
        query = """
        query RunsQuery($limit: Int!, $filter: RunsFilter) {
            runsOrError(limit: $limit, filter: $filter) {
                ... on Runs {
                    results {
                        runId
                        status
                        pipelineName
                        startTime
                        endTime
                        tags {
                            key
                            value
                        }
                    }
                }
                ... on InvalidPipelineRunsFilterError {
                    message
                }
                ... on PythonError {
                    message
                }
            }
        }
        """

        variables: dict[str, Any] = {"limit": limit}

        run_filter: dict[str, Any] = {}
        wanted = list(statuses or [])
        if status:
            wanted.append(status)
        if wanted:
            run_filter["statuses"] = wanted
        if job_name:
            run_filter["pipelineName"] = job_name
        if tags:
            run_filter["tags"] = [{"key": k, "value": v} for k, v in tags.items()]
        if run_filter:
            variables["filter"] = run_filter

        data = self._execute_query(query, variables)

        runs_result = data.get("runsOrError", {})

        if "message" in runs_result:
            raise RuntimeError(runs_result["message"])

        results = []
        for run in runs_result.get("results", []):
            tags_dict = {tag["key"]: tag["value"] for tag in run.get("tags", [])}

            results.append(
                RunSummary(
                    run_id=run.get("runId", ""),
                    status=run.get("status", "UNKNOWN"),
                    job_name=run.get("pipelineName", ""),
                    started_at=_timestamp(run.get("startTime")),
                    ended_at=_timestamp(run.get("endTime")),
                    tags=tags_dict,
                )
            )

        return results

    def find_active_deployments(self, target_label: str) -> list[RunSummary]:
        """Queued or running deploy_job runs against the same target."""
        return self.get_runs(
            statuses=list(ACTIVE_STATUSES),
            job_name=DEPLOY_JOB_NAME,
            tags={TAG_DEPLOY_TARGET: target_label},
            limit=10,
        )


# Singleton instance
_dagster_service: Optional[DagsterService] = None


def get_dagster_service() -> DagsterService:
    """Get or create the Dagster service singleton."""
    global _dagster_service
    if _dagster_service is None:
        _dagster_service = DagsterService()
    return _dagster_service
