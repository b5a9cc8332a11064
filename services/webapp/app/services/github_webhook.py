# =============================================================================
# GitHub Webhook Helpers
# =============================================================================
# Signature verification and push payload parsing for the webhook router.
# =============================================================================

import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"


def compute_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of an X-Hub-Signature-256 header."""
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(secret, body), signature.strip())


@dataclass
class PushEvent:
    """The parts of a GitHub push payload the trigger needs."""

    branch: Optional[str]
    repo_urls: set[str]
    after: Optional[str]
    sender: Optional[str]
    deleted: bool = False


def _normalize_repo_url(url: str) -> str:
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]
    return url.lower()


def parse_push(payload: dict) -> PushEvent:
    """
    Extract branch, repository URLs, head commit and sender from a push.

    Tag pushes yield branch=None.
    """
    ref = payload.get("ref") or ""
    branch = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else None

    repository = payload.get("repository") or {}
    urls = {
        _normalize_repo_url(repository[key])
        for key in ("clone_url", "ssh_url", "git_url", "html_url", "url")
        if isinstance(repository.get(key), str) and repository.get(key)
    }
    sender = (payload.get("sender") or {}).get("login") or (
        (payload.get("pusher") or {}).get("name")
    )
    return PushEvent(
        branch=branch,
        repo_urls=urls,
        after=payload.get("after"),
        sender=sender,
        deleted=bool(payload.get("deleted", False)),
    )


def matches_repository(event: PushEvent, repo_url: str) -> bool:
    """True if the push came from the configured repository."""
    if not event.repo_urls:
        return False
    return _normalize_repo_url(repo_url) in event.repo_urls
