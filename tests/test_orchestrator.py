"""Tests for concurrent multi-provider rewriting."""

import time

import pytest
from unittest.mock import MagicMock

from contentpilot.rewriter import MultiModelOrchestrator, RewriteConfig, RewriteJob, quality_score
from contentpilot.rewriter.models import RewriteResult


@pytest.mark.asyncio
async def test_empty_provider_list_is_a_no_op():
    """No providers means no registry lookup and no calls."""
    registry = MagicMock()
    orchestrator = MultiModelOrchestrator(registry)

    results = await orchestrator.rewrite_with_models("Title", "Content", [], RewriteConfig())

    assert results == []
    registry.get.assert_not_called()
    registry.create.assert_not_called()


@pytest.mark.asyncio
async def test_results_follow_input_order(fake_provider, registry_of):
    """Slot i belongs to provider_ids[i] even when later providers finish first."""
    slow = fake_provider("slow", delay=0.2, title="Slow title")
    fast = fake_provider("fast", delay=0.0, title="Fast title")
    orchestrator = MultiModelOrchestrator(registry_of(slow, fast))

    results = await orchestrator.rewrite_with_models("", "wind", ["slow", "fast"], RewriteConfig(timeout_seconds=2))

    assert [r.provider_id for r in results] == ["slow", "fast"]
    assert results[0].title == "Slow title"
    assert results[1].title == "Fast title"
    assert all(r.success for r in results)


@pytest.mark.asyncio
async def test_partial_failure_is_isolated(fake_provider, registry_of):
    """One failing provider never hides the others' results."""
    ok = fake_provider("ok")
    broken = fake_provider("broken", fail_reason="http_error")
    crashing = fake_provider("crashing", exception=RuntimeError("bug"))
    orchestrator = MultiModelOrchestrator(registry_of(ok, broken, crashing))

    results = await orchestrator.rewrite_with_models("T", "C", ["broken", "ok", "crashing", "missing"])

    assert len(results) == 4
    assert results[0].success is False
    assert results[0].error_kind == "http_error"
    assert results[1].success is True
    assert results[1].keywords
    assert results[1].meta_description
    assert results[2].error_kind == "unexpected"
    assert results[3].error_kind == "unknown_provider"


@pytest.mark.asyncio
async def test_timeouts_run_in_parallel(fake_provider, registry_of):
    """Wall-clock is bounded by the slowest timeout, not the sum."""
    a = fake_provider("a", delay=0.05)
    b = fake_provider("b", delay=5.0)
    c = fake_provider("c", delay=5.0)
    orchestrator = MultiModelOrchestrator(registry_of(a, b, c))

    start = time.monotonic()
    results = await orchestrator.rewrite_with_models("", "topic", ["a", "b", "c"], RewriteConfig(timeout_seconds=0.5))
    elapsed = time.monotonic() - start

    assert results[0].success is True
    assert results[1].error_kind == "timeout"
    assert results[2].error_kind == "timeout"
    assert elapsed < 1.2


@pytest.mark.asyncio
async def test_title_is_prepended_to_source(fake_provider, registry_of):
    provider = fake_provider("p")
    orchestrator = MultiModelOrchestrator(registry_of(provider))

    await orchestrator.rewrite_with_models("Headline", "Body", ["p"])

    assert provider.calls == ["Headline\n\nBody"]


@pytest.mark.asyncio
async def test_rewrite_job(fake_provider, registry_of):
    orchestrator = MultiModelOrchestrator(registry_of(fake_provider("x"), fake_provider("y")))
    job = RewriteJob(source_content="wind", provider_ids=["y", " ", "x"], target_word_count=120)

    results = await orchestrator.rewrite_job(job, timeout_seconds=1)

    assert [r.provider_id for r in results] == ["y", "x"]


class TestPickBest:
    """Tests for choosing the winning rewrite."""

    def test_highest_quality_wins(self):
        results = [
            RewriteResult(provider_id="a", success=True, content="x", quality_score=75),
            RewriteResult(provider_id="b", success=True, content="y", quality_score=90),
            RewriteResult(provider_id="c", success=False, error_kind="timeout", quality_score=99),
        ]
        assert MultiModelOrchestrator.pick_best(results).provider_id == "b"

    def test_tie_goes_to_earliest(self):
        results = [
            RewriteResult(provider_id="a", success=True, content="x", quality_score=80),
            RewriteResult(provider_id="b", success=True, content="y", quality_score=80),
        ]
        assert MultiModelOrchestrator.pick_best(results).provider_id == "a"

    def test_no_success(self):
        assert MultiModelOrchestrator.pick_best([RewriteResult(provider_id="a", success=False)]) is None


class TestQualityScore:
    """Tests for the deterministic quality heuristic."""

    def test_empty_content_scores_zero(self):
        assert quality_score("", 500) == 0.0

    def test_structure_and_length_rewarded(self):
        sentence = "Wind farms along the coast produced a record amount of electricity this winter season. "
        paragraph = "<p>" + sentence * 3 + "</p>"
        content = "<h2>Heading</h2>\n\n" + "\n\n".join([paragraph] * 3)
        words = len(content.replace("<p>", " ").replace("</p>", " ").replace("<h2>", " ").replace("</h2>", " ").split())

        score = quality_score(content, words)

        assert score == 95.0
        assert quality_score(content, words) == score
