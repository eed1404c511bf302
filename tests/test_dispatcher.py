from __future__ import annotations

import pytest
from conftest import WEBHOOK_SECRET
from conftest import FakeGitHub
from conftest import FakeProvider
from conftest import issue_comment_payload
from conftest import make_pr_file
from conftest import pull_request_payload
from conftest import sign

from app.github.client import GitHubAPIError
from app.github.signature import compute_github_signature
from app.infra.log import configure_logging
from app.infra.metrics import Metrics
from app.llm.base import ProviderInvocationError
from app.llm.manager import ModelManager
from app.review.dispatcher import EventDispatcher
from app.review.orchestrator import build_review_orchestrator
from app.review.policy import POLICY_FILE_PATH
from app.review.policy import ReviewPolicyResolver


class _Clock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _dispatcher(
    github: FakeGitHub,
    metrics: Metrics,
    *providers: FakeProvider,
    clock: _Clock | None = None,
) -> EventDispatcher:
    manager = ModelManager(metrics=metrics)
    for provider in providers:
        manager.register_provider(provider)
    orchestrator = build_review_orchestrator(
        model_manager=manager,
        policy_resolver=ReviewPolicyResolver(source=github),
        metrics=metrics,
    )
    return EventDispatcher(
        github_client=github,
        orchestrator=orchestrator,
        metrics=metrics,
        webhook_secret=WEBHOOK_SECRET,
        clock=clock or _Clock(),
    )


def _two_files() -> list:
    return [
        make_pr_file("src/widget.py", patch="@@ -0,0 +1 @@\n+class Widget: ..."),
        make_pr_file("README.md", patch="@@ -1 +1 @@\n-old\n+new"),
    ]


@pytest.mark.asyncio
async def test_pull_request_opened_end_to_end(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    provider = FakeProvider("openai", content="### Summary\nLooks fine.", model_id="gpt-4")
    dispatcher = _dispatcher(github, metrics, provider)

    body, signature = sign(pull_request_payload("opened", number=42))
    response = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert response.status_code == 200
    assert response.body == {"processed": True, "commentId": 1001}

    prompt = provider.calls[0][0]
    assert "src/widget.py:\n```\n@@ -0,0 +1 @@\n+class Widget: ...\n```" in prompt
    assert "README.md:\n```\n@@ -1 +1 @@\n-old\n+new\n```" in prompt

    assert github.calls == [
        "files acme/widgets#42",
        f"content acme/widgets:{POLICY_FILE_PATH}@abc123",
        "comment acme/widgets#42",
    ]
    comment = github.comments[0].body
    assert comment.startswith("## Automated Code Review")
    assert "Looks fine." in comment
    assert "using openai (gpt-4)" in comment

    assert metrics.counters["webhooks_received"] == 1
    assert metrics.counters["webhooks_processed"] == 1
    assert metrics.counters["ai_calls_succeeded"] == 1


@pytest.mark.asyncio
async def test_tampered_signature_has_no_side_effects(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    provider = FakeProvider("openai")
    dispatcher = _dispatcher(github, metrics, provider)

    body, signature = sign(pull_request_payload("opened"))
    tampered = body.replace(b"Add widgets", b"Add gadgets")
    response = await dispatcher.handle_delivery(tampered, "pull_request", signature)

    assert response.status_code == 401
    assert github.calls == []
    assert provider.calls == []
    assert metrics.counters["webhooks_processed"] == 0


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai"))
    body, _ = sign(pull_request_payload("opened"))

    response = await dispatcher.handle_delivery(body, "pull_request", None)

    assert response.status_code == 401
    assert github.calls == []


@pytest.mark.asyncio
async def test_invalid_json_after_valid_signature(metrics: Metrics) -> None:
    dispatcher = _dispatcher(FakeGitHub(), metrics, FakeProvider("openai"))
    body = b"not-json"
    response = await dispatcher.handle_delivery(body, "pull_request", compute_github_signature(body, WEBHOOK_SECRET))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_reviews_within_cooldown_are_deduplicated(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    clock = _Clock()
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai"), clock=clock)
    body, signature = sign(pull_request_payload("synchronize"))

    first = await dispatcher.handle_delivery(body, "pull_request", signature)
    clock.now += 299
    second = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert first.body["processed"] is True
    assert second.status_code == 200
    assert second.body == {"processed": False, "reason": "PR was recently processed"}
    assert len(github.comments) == 1
    assert metrics.counters["webhooks_processed"] == 1


@pytest.mark.asyncio
async def test_reviews_outside_cooldown_both_post(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    clock = _Clock()
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai"), clock=clock)
    body, signature = sign(pull_request_payload("synchronize"))

    await dispatcher.handle_delivery(body, "pull_request", signature)
    clock.now += 301
    second = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert second.body == {"processed": True, "commentId": 1002}
    assert len(github.comments) == 2


@pytest.mark.asyncio
async def test_dedup_is_per_pull_request(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai"))

    body_a, sig_a = sign(pull_request_payload("opened", number=1))
    body_b, sig_b = sign(pull_request_payload("opened", number=2))
    await dispatcher.handle_delivery(body_a, "pull_request", sig_a)
    await dispatcher.handle_delivery(body_b, "pull_request", sig_b)

    assert len(github.comments) == 2


@pytest.mark.asyncio
async def test_comment_without_trigger_makes_no_api_calls(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai"))

    body, signature = sign(issue_comment_payload("please review this"))
    response = await dispatcher.handle_delivery(body, "issue_comment", signature)

    assert response.status_code == 200
    assert response.body == {"processed": False, "reason": "Comment does not contain review trigger"}
    assert github.calls == []


@pytest.mark.asyncio
async def test_manual_trigger_fetches_pull_request_details(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files(), head_sha="def456")
    provider = FakeProvider("openai")
    dispatcher = _dispatcher(github, metrics, provider)

    body, signature = sign(issue_comment_payload("@bot /ai-review please"))
    response = await dispatcher.handle_delivery(body, "issue_comment", signature)

    assert response.body == {"processed": True, "commentId": 1001}
    assert github.calls[0] == "details acme/widgets#42"
    assert f"content acme/widgets:{POLICY_FILE_PATH}@def456" in github.calls
    assert "PR Title: Add widgets" in provider.calls[0][0]


@pytest.mark.asyncio
async def test_comment_on_plain_issue_is_skipped(metrics: Metrics) -> None:
    github = FakeGitHub()
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai"))
    body, signature = sign(issue_comment_payload("/ai-review", on_pr=False))

    response = await dispatcher.handle_delivery(body, "issue_comment", signature)

    assert response.body == {"processed": False, "reason": "Not a pull request comment"}
    assert github.calls == []


@pytest.mark.asyncio
async def test_edited_comment_is_skipped(metrics: Metrics) -> None:
    dispatcher = _dispatcher(FakeGitHub(), metrics, FakeProvider("openai"))
    body, signature = sign(issue_comment_payload("/ai-review", action="edited"))
    response = await dispatcher.handle_delivery(body, "issue_comment", signature)
    assert response.body == {"processed": False, "reason": 'Action "edited" not supported'}


@pytest.mark.asyncio
async def test_unsupported_event_and_action(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai"))

    body, signature = sign({"ref": "refs/heads/main"})
    push = await dispatcher.handle_delivery(body, "push", signature)
    body, signature = sign(pull_request_payload("closed"))
    closed = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert push.body == {"processed": False, "reason": 'Event type "push" not supported'}
    assert closed.body == {"processed": False, "reason": 'Action "closed" not supported'}
    assert github.calls == []
    assert metrics.counters["webhooks_received"] == 2
    assert metrics.counters["webhooks_processed"] == 0


@pytest.mark.asyncio
async def test_no_files_changed(metrics: Metrics) -> None:
    github = FakeGitHub(files=[])
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai"))
    body, signature = sign(pull_request_payload("opened"))

    response = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert response.body == {"processed": False, "reason": "No files changed"}
    assert github.comments == []


@pytest.mark.asyncio
async def test_policy_can_disable_reviews(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files(), policy_yaml="general:\n  enabled: false\n")
    provider = FakeProvider("openai")
    dispatcher = _dispatcher(github, metrics, provider)
    body, signature = sign(pull_request_payload("opened"))

    response = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert response.body == {"processed": False, "reason": "Reviews disabled by repository policy"}
    assert provider.calls == []
    assert github.comments == []


@pytest.mark.asyncio
async def test_policy_fallback_marks_comment(metrics: Metrics) -> None:
    github = FakeGitHub(
        files=_two_files(),
        policy_yaml="ai:\n  provider: openai\n  enable_fallback: true\n  fallback_provider: anthropic\n",
    )
    dispatcher = _dispatcher(
        github,
        metrics,
        FakeProvider("openai", error=ProviderInvocationError("openai", "down")),
        FakeProvider("anthropic", content="fallback says hi", model_id="claude-3"),
    )
    body, signature = sign(pull_request_payload("opened"))

    response = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert response.body["processed"] is True
    assert "fallback says hi" in github.comments[0].body
    assert "using anthropic (fallback) (claude-3)" in github.comments[0].body


@pytest.mark.asyncio
async def test_model_failure_posts_failure_comment(metrics: Metrics) -> None:
    github = FakeGitHub(files=_two_files())
    dispatcher = _dispatcher(github, metrics, FakeProvider("openai", error=ProviderInvocationError("openai", "boom")))
    body, signature = sign(pull_request_payload("opened"))

    response = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert response.status_code == 200
    assert response.body == {"processed": True, "commentId": 1001}
    assert "Error: openai: boom" in github.comments[0].body
    assert metrics.counters["errors"] == 1


@pytest.mark.asyncio
async def test_github_failure_is_answered_with_200(metrics: Metrics) -> None:
    class _BrokenGitHub(FakeGitHub):
        async def list_pull_request_files(self, owner, repo, pull_number):
            raise GitHubAPIError(500, "GitHub API error 500: token ghp_abcdefghijklmnopqrstuvwxyz rejected")

    dispatcher = _dispatcher(_BrokenGitHub(), metrics, FakeProvider("openai"))
    body, signature = sign(pull_request_payload("opened"))

    response = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert response.status_code == 200
    assert response.body["processed"] is False
    assert "GitHub API error 500" in response.body["error"]
    assert "ghp_abcdefghijklmnopqrstuvwxyz" not in response.body["error"]
    assert metrics.counters["errors"] == 1
    assert metrics.last_error is not None


@pytest.mark.asyncio
async def test_malformed_payload_is_answered_with_200(metrics: Metrics) -> None:
    dispatcher = _dispatcher(FakeGitHub(), metrics, FakeProvider("openai"))
    body, signature = sign({"action": "opened"})

    response = await dispatcher.handle_delivery(body, "pull_request", signature)

    assert response.status_code == 200
    assert response.body["processed"] is False
    assert "error" in response.body


@pytest.mark.asyncio
async def test_console_log_redacts_tokens_from_errors(metrics: Metrics, capsys, restore_root_logging) -> None:
    class _BrokenGitHub(FakeGitHub):
        async def list_pull_request_files(self, owner, repo, pull_number):
            raise GitHubAPIError(500, "GitHub API error 500: token ghp_abcdefghijklmnopqrstuvwxyz rejected")

    configure_logging("info")
    dispatcher = _dispatcher(_BrokenGitHub(), metrics, FakeProvider("openai"))
    body, signature = sign(pull_request_payload("opened"))

    await dispatcher.handle_delivery(body, "pull_request", signature)

    stderr = capsys.readouterr().err
    assert "Error processing webhook" in stderr
    assert "ghp_abcdefghijklmnopqrstuvwxyz" not in stderr
    assert "[REDACTED_TOKEN]" in stderr
