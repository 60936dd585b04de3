"""Profitability ranking of registered items.

Each item is resolved independently at its base output quantity, so items are
evaluated on a thread pool. Per-item failures become a report status; the
returned list always holds one report per requested item.
"""
from __future__ import annotations

import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .bom import BOMResolver
from .errors import (
    CatalogMiss,
    CyclicDependency,
    IndustryError,
    MissingProbabilityData,
    PriceUnavailable,
    RankingCancelled,
    UnsupportedActivity,
    UpstreamError,
    UpstreamTimeout,
)
from .industry_logging import IndustryLogger, LogLevel
from .models import CostNode, InventionOutcome, ItemRef, ProfitReport, ReportStatus, UnitSource
from .policy import BuildPolicy

SECONDS_PER_HOUR = 3600.0
# Interval at which the coordinating thread checks the cancel event
CANCEL_POLL_SECONDS = 0.05

_STATUS_BY_ERROR: Tuple[Tuple[type, ReportStatus], ...] = (
    (PriceUnavailable, ReportStatus.PRICE_UNAVAILABLE),
    (CyclicDependency, ReportStatus.CYCLIC_DEPENDENCY),
    (MissingProbabilityData, ReportStatus.MISSING_PROBABILITY_DATA),
    (UpstreamTimeout, ReportStatus.UPSTREAM_TIMEOUT),
    (UpstreamError, ReportStatus.UPSTREAM_ERROR),
    (UnsupportedActivity, ReportStatus.UNSUPPORTED_ACTIVITY),
    (CatalogMiss, ReportStatus.CATALOG_MISS),
)


def default_workers() -> int:
    """Same sizing rule as ThreadPoolExecutor's default."""
    return min(32, (os.cpu_count() or 1) + 4)


def status_for(error: IndustryError) -> ReportStatus:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return ReportStatus.CATALOG_MISS


def ranking_key(report: ProfitReport):
    """
    Total order of a ranking.

    Resolved items with a known profit/hour come first, highest first; ties
    go to the higher traded volume (unknown volume lowest), then to the
    smaller item id. Resolved items without profit/hour follow, then
    unresolved items, each group by item id.
    """
    if report.is_resolved and report.profit_per_hour is not None:
        volume = report.traded_volume if report.traded_volume is not None else float("-inf")
        return (0, -report.profit_per_hour, -volume, report.item.item_id)
    group = 1 if report.is_resolved else 2
    return (group, 0.0, 0.0, report.item.item_id)


def find_invention(tree: CostNode) -> Optional[InventionOutcome]:
    for child in tree.children:
        if child.source is UnitSource.INVENT:
            return child.invention
    return None


class ProfitabilityRanker:
    """
    Orders items by profit per hour.

    Parameters
    ----------
    resolver : BOMResolver
        Resolver used for every item (it holds no per-resolution state).
    logger : IndustryLogger, optional
        Receives per-item failures and the ranking summary.
    workers : int, optional
        Thread pool size. Defaults to ``min(32, cpu_count + 4)``.
    timeout : float, optional
        Seconds allowed for the whole pass. Items still running afterwards
        are reported as UPSTREAM_TIMEOUT. None waits indefinitely.
    """

    def __init__(
        self,
        resolver: BOMResolver,
        logger: Optional[IndustryLogger] = None,
        workers: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.resolver = resolver
        self.logger = logger
        self.workers = max(1, workers or default_workers())
        self.timeout = timeout

    def rank(
        self,
        items: Iterable[str],
        facility_map: Mapping[str, str],
        policy: Optional[BuildPolicy] = None,
        default_facility: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[ProfitReport]:
        """
        Rank items, most profitable per hour first.

        Parameters
        ----------
        items : iterable of str
            Item ids to rank. A repeated id is evaluated once and reported
            once per occurrence, so the result matches the input length.
        facility_map : mapping
            Manufacturing facility per item id.
        policy : BuildPolicy, optional
            Buy-vs-build policy shared by every item.
        default_facility : str, optional
            Facility for items missing from ``facility_map``.
        cancel_event : threading.Event, optional
            When set, the pass stops and in-flight results are discarded.

        Raises
        ------
        RankingCancelled
            ``cancel_event`` was set before the pass completed.
        """
        policy = policy or BuildPolicy()
        requested = list(items)
        item_ids = list(dict.fromkeys(requested))
        if self.logger:
            self.logger.log_ranking_start(len(requested), self.workers)

        reports: Dict[str, ProfitReport] = {}
        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="ProfitRanker")
        try:
            futures: Dict[Future, str] = {}
            for item_id in item_ids:
                facility_id = facility_map.get(item_id, default_facility)
                future = executor.submit(self.evaluate, item_id, facility_id, policy, cancel_event)
                futures[future] = item_id

            deadline = None if self.timeout is None else time.monotonic() + self.timeout
            pending = set(futures)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    raise RankingCancelled("Ranking pass cancelled")
                poll = CANCEL_POLL_SECONDS if cancel_event is not None else None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    poll = remaining if poll is None else min(poll, remaining)
                done, pending = wait(pending, timeout=poll, return_when=FIRST_COMPLETED)
                for future in done:
                    reports[futures[future]] = future.result()

            if cancel_event is not None and cancel_event.is_set():
                raise RankingCancelled("Ranking pass cancelled")

            # Collaborators may be the ones hanging: build these reports without them
            for future in pending:
                item_id = futures[future]
                error = UpstreamTimeout(f"ranking '{item_id}'", f"pass exceeded {self.timeout}s")
                reports[item_id] = self._failure(item_id, error)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        ranked = sorted((reports[item_id] for item_id in requested), key=ranking_key)
        if self.logger:
            self.logger.log_ranking(ranked)
        return ranked

    def evaluate(
        self,
        item_id: str,
        facility_id: Optional[str],
        policy: BuildPolicy,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProfitReport:
        """Profit report of a single item. Engine errors become a status."""
        if cancel_event is not None and cancel_event.is_set():
            # rank() discards this result
            return ProfitReport(item=ItemRef(item_id, item_id), status=ReportStatus.UPSTREAM_TIMEOUT,
                                error="ranking pass cancelled")
        item: Optional[ItemRef] = None
        try:
            item = self.resolver.get_item(item_id)
            if facility_id is None:
                raise CatalogMiss(item_id, "no facility assigned")
            return self._evaluate(item, facility_id, policy)
        except IndustryError as exc:
            return self._failure(item_id, exc, item)

    def _evaluate(self, item: ItemRef, facility_id: str, policy: BuildPolicy) -> ProfitReport:
        resolver = self.resolver
        item_id = item.item_id
        blueprint = resolver.get_blueprint(item_id)
        if blueprint is None:
            raise CatalogMiss(item_id, "no blueprint to build from")

        tree = resolver.resolve(item_id, blueprint.output_quantity, facility_id, policy)
        output = tree.produced
        job_cost = tree.total_job_cost
        cost_per_run = tree.cost + job_cost
        unit_cost = cost_per_run / output
        invention = find_invention(tree)

        market_id = policy.market_for(facility_id)
        quote = resolver.get_price(item_id, market_id)
        if quote is None:
            return ProfitReport(
                item=item,
                status=ReportStatus.PRICE_UNAVAILABLE,
                unit_cost=unit_cost,
                output_quantity=output,
                run_duration=tree.time,
                job_cost=job_cost,
                cost_tree=tree,
                invention=invention,
                error=str(PriceUnavailable(item_id, market_id)),
            )

        profit_per_run = quote.unit_price * output - cost_per_run
        profit_per_hour = None
        if tree.time > 0:
            profit_per_hour = profit_per_run * SECONDS_PER_HOUR / tree.time

        return ProfitReport(
            item=item,
            status=ReportStatus.RESOLVED,
            unit_cost=unit_cost,
            unit_sell_price=quote.unit_price,
            output_quantity=output,
            run_duration=tree.time,
            profit_per_run=profit_per_run,
            profit_per_hour=profit_per_hour,
            traded_volume=quote.traded_volume_30d,
            job_cost=job_cost,
            cost_tree=tree,
            invention=invention,
        )

    def _failure(self, item_id: str, error: IndustryError, item: Optional[ItemRef] = None) -> ProfitReport:
        """Unresolved report; ``item`` is the catalog entry if the worker got that far."""
        status = status_for(error)
        if self.logger:
            # Corrupt reference data is surfaced even at the quietest level
            level = LogLevel.MINIMAL if status is ReportStatus.CYCLIC_DEPENDENCY else LogLevel.SUMMARY
            self.logger.log_item_failure(item_id, status.value, str(error), level=level)
        return ProfitReport(
            item=item or ItemRef(item_id, item_id),
            status=status,
            error=str(error),
        )


def rank_reports(reports: Sequence[ProfitReport]) -> List[ProfitReport]:
    """Order already computed reports the way :meth:`ProfitabilityRanker.rank` does."""
    return sorted(reports, key=ranking_key)
