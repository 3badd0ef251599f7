"""
Multi-provider rewrite orchestration.

Fans one rewrite request out to several backends concurrently. Each backend
runs under its own timeout and writes only to its own slot, so one slow or
failing backend never affects the others and the output order always matches
the requested provider order.
"""

import asyncio
import time
from typing import List, Optional

from contentpilot.core.errors import ProviderError
from contentpilot.core.logging import get_logger
from contentpilot.core.seo import extract_keywords, meta_description_from
from contentpilot.core.utils import count_words, strip_tags
from contentpilot.providers.registry import ProviderRegistry
from .models import RewriteConfig, RewriteJob, RewriteResult
from .scoring import quality_score

logger = get_logger(__name__)


class MultiModelOrchestrator:
    """Runs the same rewrite against several providers in parallel."""

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    async def rewrite_with_models(
        self,
        title: str,
        content: str,
        provider_ids: List[str],
        config: Optional[RewriteConfig] = None,
    ) -> List[RewriteResult]:
        """
        Rewrite ``content`` with every provider in ``provider_ids``.

        Args:
            title: Source title (may be empty)
            content: Source text or topic
            provider_ids: Ordered backend ids
            config: Style, audience, length and per-provider timeout

        Returns:
            One RewriteResult per provider id, in the same order. Failures are
            reported in their slot with ``success=False``; nothing is raised.
        """
        if not provider_ids:
            return []

        config = config or RewriteConfig()
        source = f"{title}\n\n{content}" if title else content
        results: List[Optional[RewriteResult]] = [None] * len(provider_ids)

        logger.info(
            f"Starting rewrite with {len(provider_ids)} provider(s)",
            extra={"providers": list(provider_ids), "timeout_seconds": config.timeout_seconds},
        )

        async def run_slot(index: int, provider_id: str) -> None:
            results[index] = await self._run_one(provider_id, source, title, config)

        await asyncio.gather(*(run_slot(i, pid) for i, pid in enumerate(provider_ids)))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Rewrite finished: {succeeded}/{len(results)} provider(s) succeeded")
        return results

    async def rewrite_job(self, job: RewriteJob, timeout_seconds: float = 60.0) -> List[RewriteResult]:
        """Run a RewriteJob through ``rewrite_with_models``."""
        return await self.rewrite_with_models(
            job.source_title,
            job.source_content,
            job.provider_ids,
            job.to_config(timeout_seconds),
        )

    @staticmethod
    def pick_best(results: List[RewriteResult]) -> Optional[RewriteResult]:
        """Highest quality successful result; the earliest one wins ties."""
        best = None
        for result in results:
            if not result.success:
                continue
            if best is None or result.quality_score > best.quality_score:
                best = result
        return best

    async def _run_one(
        self,
        provider_id: str,
        source: str,
        source_title: str,
        config: RewriteConfig,
    ) -> RewriteResult:
        start_time = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start_time) * 1000)

        try:
            adapter = self.registry.get(provider_id)
            output = await asyncio.wait_for(
                adapter.rewrite(source, config.style, config.audience, config.target_word_count),
                timeout=config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Provider {provider_id} timed out after {config.timeout_seconds}s")
            return self._failure(provider_id, "timeout", f"Timed out after {config.timeout_seconds}s", elapsed_ms())
        except ProviderError as e:
            return self._failure(provider_id, e.reason, e.message, elapsed_ms())
        except Exception as e:
            logger.error(f"Provider {provider_id} raised unexpectedly: {e}", exc_info=True)
            return self._failure(provider_id, "unexpected", str(e), elapsed_ms())

        content = output.content
        if not content or not content.strip():
            return self._failure(provider_id, "malformed_response", "Empty content", elapsed_ms())

        text = strip_tags(content)
        result = RewriteResult(
            provider_id=provider_id,
            success=True,
            title=output.title or source_title,
            content=content,
            meta_description=output.meta_description or meta_description_from(content),
            keywords=output.keywords or extract_keywords(content),
            elapsed_ms=elapsed_ms(),
            word_count=count_words(text),
            quality_score=quality_score(content, config.target_word_count),
        )
        logger.info(f"Provider {provider_id} completed in {result.elapsed_ms}ms")
        return result

    @staticmethod
    def _failure(provider_id: str, kind: str, message: str, elapsed: int) -> RewriteResult:
        return RewriteResult(
            provider_id=provider_id,
            success=False,
            elapsed_ms=elapsed,
            error_kind=kind,
            error_message=message,
        )
