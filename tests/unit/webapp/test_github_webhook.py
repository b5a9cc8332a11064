"""Unit tests for GitHub webhook signature and payload helpers."""

from app.services.github_webhook import (
    compute_signature,
    matches_repository,
    parse_push,
    verify_signature,
)


def test_signature_matches_github_format():
    # Example from GitHub's webhook validation docs
    signature = compute_signature("It's a Secret to Everybody", b"Hello, World!")
    assert signature == (
        "sha256=757107ea0eb2509fc211221cce984b8a37570b6d7586c22c46f4379c8b043e17"
    )


def test_verify_signature():
    body = b'{"ref": "refs/heads/main"}'
    good = compute_signature("secret", body)
    assert verify_signature("secret", body, good) is True
    assert verify_signature("other", body, good) is False
    assert verify_signature("secret", body, None) is False


def test_parse_push():
    event = parse_push(
        {
            "ref": "refs/heads/main",
            "after": "a" * 40,
            "repository": {
                "clone_url": "https://github.com/Example/Flask-App.git",
                "ssh_url": "git@github.com:Example/Flask-App.git",
            },
            "sender": {"login": "octocat"},
        }
    )
    assert event.branch == "main"
    assert event.sender == "octocat"
    assert event.deleted is False
    assert matches_repository(event, "https://github.com/example/flask-app")
    assert matches_repository(event, "git@github.com:example/flask-app.git")
    assert not matches_repository(event, "https://github.com/example/other.git")


def test_parse_tag_push_has_no_branch():
    event = parse_push({"ref": "refs/tags/v1", "repository": {}})
    assert event.branch is None
    assert not matches_repository(event, "https://github.com/example/app.git")


def test_sender_falls_back_to_pusher():
    event = parse_push({"ref": "refs/heads/main", "pusher": {"name": "deploy-bot"}})
    assert event.sender == "deploy-bot"
