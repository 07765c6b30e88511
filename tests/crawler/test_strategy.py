"""Tests for running tagged strategies and fill-only chains."""

from unittest.mock import Mock

from linkpreview.crawler.deadline import Deadline
from linkpreview.crawler.strategy import (
    Strategy,
    StrategyContext,
    StrategyKind,
    run_chain,
    run_strategy,
)
from linkpreview.errors import ClientHttpError, NetworkError
from linkpreview.models import PageMetadata
from linkpreview.utils.telemetry import ExtractionAttempt


def _context(settings, fake_fetcher, url="https://example.com/a"):
    return StrategyContext(
        url=url,
        fetcher=fake_fetcher,
        settings=settings,
        trace=ExtractionAttempt(url, Deadline.after(30)),
    )


class TestRunStrategy:
    """Tests for run_strategy."""

    def test_merges_found_fields(self, settings, fake_fetcher):
        ctx = _context(settings, fake_fetcher)
        ctx.metadata.title = "Existing"
        strategy = Strategy(
            StrategyKind.AMP_MIRROR,
            lambda c: PageMetadata(title="Other", image="https://x/a.png"),
        )

        filled = run_strategy(strategy, ctx, Deadline.after(30))

        assert filled == ["image"]
        assert ctx.metadata.title == "Existing"
        outcome = ctx.trace.strategy_trace[0]
        assert outcome.strategy == "amp_mirror"
        assert outcome.success is True
        assert outcome.fields == ["title", "image"]

    def test_errors_stay_local(self, settings, fake_fetcher):
        ctx = _context(settings, fake_fetcher)
        failing = Strategy(StrategyKind.READER_PROXY, Mock(side_effect=NetworkError("down")))
        crashing = Strategy(StrategyKind.ENRICHMENT, Mock(side_effect=KeyError("data")))

        assert run_strategy(failing, ctx, Deadline.after(30)) == []
        assert run_strategy(crashing, ctx, Deadline.after(30)) == []
        assert [o.success for o in ctx.trace.strategy_trace] == [False, False]
        assert "NetworkError" in ctx.trace.strategy_trace[0].error
        assert ctx.primary_error is None

    def test_primary_failure_is_remembered(self, settings, fake_fetcher):
        ctx = _context(settings, fake_fetcher)
        error = ClientHttpError(404, ctx.url)
        run_strategy(
            Strategy(StrategyKind.PRIMARY_FETCH, Mock(side_effect=error)), ctx, Deadline.after(30)
        )
        assert ctx.primary_error is error

    def test_child_deadline_is_capped(self, settings, fake_fetcher):
        ctx = _context(settings, fake_fetcher)
        seen = {}

        def attempt(c):
            seen["remaining"] = c.deadline.remaining()
            return None

        run_strategy(Strategy(StrategyKind.AMP_MIRROR, attempt, timeout=2), ctx, Deadline.after(30))

        assert 0 < seen["remaining"] <= 2
        assert ctx.trace.strategy_trace[0].error == "no metadata"


class TestRunChain:
    """Tests for run_chain."""

    def test_stops_once_sufficient(self, settings, fake_fetcher):
        ctx = _context(settings, fake_fetcher)
        later = Mock(return_value=PageMetadata(description="never used"))
        chain = [
            Strategy(StrategyKind.AMP_MIRROR, lambda c: PageMetadata(title="T")),
            Strategy(StrategyKind.THUMBNAIL, later),
        ]

        run_chain(chain, ctx, Deadline.after(30), sufficient=lambda m: m.title is not None)

        later.assert_not_called()
        assert ctx.metadata.title == "T"

    def test_skips_strategies_that_do_not_apply(self, settings, fake_fetcher):
        ctx = _context(settings, fake_fetcher)
        gated = Mock(return_value=PageMetadata(title="T"))
        chain = [Strategy(StrategyKind.ENRICHMENT, gated, applies=lambda c: False)]

        run_chain(chain, ctx, Deadline.after(30), sufficient=PageMetadata.has_core_fields)

        gated.assert_not_called()
        assert ctx.trace.strategy_trace == []

    def test_expired_deadline_runs_nothing(self, settings, fake_fetcher):
        ctx = _context(settings, fake_fetcher)
        step = Mock(return_value=PageMetadata(title="T"))
        expired = Deadline(0.0, clock=lambda: 1.0)

        run_chain(
            [Strategy(StrategyKind.AMP_MIRROR, step)],
            ctx,
            expired,
            sufficient=PageMetadata.has_core_fields,
        )

        step.assert_not_called()
