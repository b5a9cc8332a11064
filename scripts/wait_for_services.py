#!/usr/bin/env python3
"""
Service health check script for integration tests.

Polls the deployment stack (MongoDB ledger, Dagster, webapp) until each
answers or its timeout is reached.
"""

import os
import sys
import time
from typing import Callable

import requests
from pymongo import MongoClient

from libs.models import MongoSettings
from libs.run_config import DEPLOY_JOB_NAME


# =============================================================================
# Health Check Functions
# =============================================================================


def check_mongodb(settings: MongoSettings, timeout: int = 30) -> bool:
    """Check if MongoDB is ready and accessible."""
    try:
        client = MongoClient(
            settings.connection_string,
            serverSelectionTimeoutMS=timeout * 1000,
        )
        client.admin.command("ping")
        client.close()
        return True
    except Exception as e:
        print(f"  MongoDB not ready: {e}")
        return False


def check_deploy_job(port: int = 3000, timeout: int = 30) -> bool:
    """
    Check that Dagster answers and the user-code location exposes deploy_job.
    """
    query = """
        {
            workspaceOrError {
                ... on Workspace {
                    locationEntries {
                        locationOrLoadError {
                            ... on RepositoryLocation {
                                repositories { jobs { name } }
                            }
                        }
                    }
                }
            }
        }
    """
    try:
        response = requests.post(
            f"http://localhost:{port}/graphql",
            json={"query": query},
            timeout=timeout,
        )
        if response.status_code != 200:
            print(f"  Dagster GraphQL returned status {response.status_code}")
            return False

        workspace = response.json().get("data", {}).get("workspaceOrError", {})
        jobs = [
            job.get("name")
            for entry in workspace.get("locationEntries", [])
            for repo in entry.get("locationOrLoadError", {}).get("repositories", [])
            for job in repo.get("jobs", [])
        ]
        if DEPLOY_JOB_NAME in jobs:
            return True
        print(f"  {DEPLOY_JOB_NAME} not loaded yet. Available jobs: {jobs}")
        return False
    except Exception as e:
        print(f"  Dagster not ready: {e}")
        return False


def check_webapp(port: int = 8080, timeout: int = 30) -> bool:
    """Check if the webapp health endpoint is ready."""
    try:
        response = requests.get(f"http://localhost:{port}/health", timeout=timeout)
        if response.status_code == 200 and response.json().get("status") == "healthy":
            return True
        print(f"  Webapp health returned status {response.status_code}")
        return False
    except Exception as e:
        print(f"  Webapp not ready: {e}")
        return False


# =============================================================================
# Retry Logic
# =============================================================================


def wait_for_service(
    name: str,
    check_fn: Callable[[], bool],
    timeout: int = 60,
    interval: int = 2,
) -> bool:
    """Poll check_fn until it returns True or timeout seconds pass."""
    print(f"Waiting for {name}...")
    start_time = time.time()

    while time.time() - start_time < timeout:
        if check_fn():
            print(f"[OK] {name} is ready (took {time.time() - start_time:.1f}s)")
            return True
        time.sleep(interval)

    print(f"[FAIL] {name} failed to become ready after {time.time() - start_time:.1f}s")
    return False


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """
    Wait for services to become ready.

    WAIT_FOR_SERVICES selects a comma-separated subset of:
    mongodb, dagster, webapp (default: all)
    """
    print("=" * 60)
    print("Service Health Check")
    print("=" * 60)

    try:
        mongo_settings = MongoSettings()
    except Exception as e:
        print(f"ERROR: Failed to load settings: {e}")
        sys.exit(1)

    dagster_port = int(os.getenv("DAGSTER_WEBSERVER_PORT", "3000"))
    webapp_port = int(os.getenv("WEBAPP_PORT", "8080"))
    timeout = int(os.getenv("SERVICE_WAIT_TIMEOUT", "60"))

    all_services = {
        "mongodb": ("MongoDB", lambda: check_mongodb(mongo_settings, timeout)),
        "dagster": ("Dagster (deploy_job)", lambda: check_deploy_job(dagster_port, timeout)),
        "webapp": ("Webapp", lambda: check_webapp(webapp_port, timeout)),
    }

    services_env = os.getenv("WAIT_FOR_SERVICES", "").strip()
    if services_env:
        requested = [s.strip().lower() for s in services_env.split(",")]
        invalid = [s for s in requested if s not in all_services]
        if invalid:
            print(f"ERROR: Unknown services: {', '.join(invalid)}")
            print(f"Valid services: {', '.join(all_services)}")
            sys.exit(1)
        services = [all_services[s] for s in requested]
    else:
        services = list(all_services.values())

    failed = [name for name, check_fn in services if not wait_for_service(name, check_fn, timeout=timeout)]

    print("=" * 60)
    if failed:
        print(f"FAILED: {', '.join(failed)} did not become ready")
        sys.exit(1)
    print("SUCCESS: All services are ready")
    sys.exit(0)


if __name__ == "__main__":
    main()
