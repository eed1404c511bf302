from __future__ import annotations

from app.review.synthesis import REVIEW_HEADER
from app.review.synthesis import format_failure_comment
from app.review.synthesis import format_review_comment


def test_review_comment_has_header_body_and_footer() -> None:
    body = format_review_comment("### Summary\nFine.\n", provider_name="openai", model_id="gpt-4")
    assert body.startswith(f"{REVIEW_HEADER}\n\n### Summary\nFine.\n")
    assert "*Review generated by AI-Powered PR Review using openai (gpt-4)*" in body


def test_review_comment_marks_fallback() -> None:
    body = format_review_comment("ok", provider_name="anthropic", model_id="claude", used_fallback=True)
    assert "using anthropic (fallback) (claude)" in body


def test_review_comment_unknown_model() -> None:
    body = format_review_comment("ok", provider_name="bedrock", model_id=None)
    assert "using bedrock (unknown model)" in body


def test_failure_comment() -> None:
    body = format_failure_comment("No AI model provider available")
    assert body.startswith(REVIEW_HEADER)
    assert "Error: No AI model provider available" in body
    assert body.rstrip().endswith("*AI-Powered PR Review*")
