"""Tests for the structured industry logger."""
from __future__ import annotations

import threading
from io import StringIO

from Industry.bom import BOMResolver
from Industry.industry_logging import LogLevel, create_logger, create_string_logger
from Industry.models import ItemRef, ProfitReport, ReportStatus
from Industry.policy import BuildPolicy


class TestLevels:
    """Entries above the configured level are dropped."""

    def test_summary_hides_tree_table(self, catalog, market, facilities):
        logger, buffer = create_string_logger(LogLevel.SUMMARY)
        BOMResolver(catalog, market, facilities, logger=logger).resolve("frame", 1, "factory")

        resolve_entries = logger.get_entries_by_category("RESOLVE")
        assert len(resolve_entries) == 1
        assert "Resolved Frame x1 at factory" in resolve_entries[0].message
        assert "Cost Tree" not in buffer.getvalue()

    def test_detailed_logs_tree_and_invention(self, catalog, market, facilities):
        logger, buffer = create_string_logger(LogLevel.DETAILED)
        BOMResolver(catalog, market, facilities, logger=logger).resolve("jaguar", 1, "factory")

        output = buffer.getvalue()
        assert "Cost Tree: Jaguar" in output
        assert "Armor Plate" in output
        invent = logger.get_entries_by_category("INVENT")
        assert len(invent) == 1
        assert invent[0].message.startswith("jaguar: p=30.00%")

    def test_trace_logs_every_node(self, catalog, market, facilities):
        logger, _ = create_string_logger(LogLevel.TRACE)
        BOMResolver(catalog, market, facilities, logger=logger).resolve("frame", 1, "factory")

        debug = [e.message for e in logger.get_entries_by_level(LogLevel.TRACE) if e.level is LogLevel.DEBUG]
        assert any("Built Armor Plate" in m for m in debug)
        assert any("Built Frame" in m for m in debug)
        trace = [e.message for e in logger.entries if e.level is LogLevel.TRACE]
        assert any("Bought Tritanium" in m for m in trace)

    def test_silent(self, catalog, market, facilities):
        logger, buffer = create_string_logger(LogLevel.SILENT)
        BOMResolver(catalog, market, facilities, logger=logger).resolve(
            "widget", 1, "factory", BuildPolicy(material_efficiency=10)
        )
        assert logger.entries == []
        assert buffer.getvalue() == ""


class TestRankingLog:
    """Ranking tables keep unknown values visible."""

    def test_unknown_values(self):
        logger, buffer = create_string_logger(LogLevel.DETAILED)
        logger.log_ranking([
            ProfitReport(item=ItemRef("1", "Rifter"), status=ReportStatus.RESOLVED,
                         profit_per_run=10.0, profit_per_hour=5.0),
            ProfitReport(item=ItemRef("2", "Frame"), status=ReportStatus.PRICE_UNAVAILABLE),
        ])
        output = buffer.getvalue()
        assert "Ranking complete: 1 resolved, 1 unresolved" in output
        assert "price_unavailable" in output
        assert "unknown" in output

    def test_truncates_long_rankings(self):
        logger, buffer = create_string_logger(LogLevel.DETAILED)
        reports = [
            ProfitReport(item=ItemRef(str(i), f"Item {i}"), status=ReportStatus.CATALOG_MISS)
            for i in range(25)
        ]
        logger.log_ranking(reports, top_n=5)
        assert "(20 more)" in buffer.getvalue()


class TestLoggerPlumbing:
    """Factories, file output and concurrent writers."""

    def test_create_logger_accepts_names_and_ints(self):
        assert create_logger("debug", output=StringIO()).level is LogLevel.DEBUG
        assert create_logger(30, output=StringIO()).level is LogLevel.DETAILED

    def test_file_output(self, tmp_path):
        path = tmp_path / "industry.log"
        with create_logger(LogLevel.SUMMARY, output=StringIO(), log_file=path) as logger:
            logger.log_ranking_start(3, 2)
        assert "Ranking 3 items with 2 workers" in path.read_text(encoding="utf-8")

    def test_to_string_and_clear(self):
        logger, _ = create_string_logger(LogLevel.SUMMARY)
        logger.include_timestamp = False
        logger.log_item_failure("42", "catalog_miss", "not found")
        assert logger.to_string() == "[SUMMARY ] [RANK] 42: catalog_miss (not found)"
        logger.clear()
        assert logger.to_string() == ""

    def test_concurrent_writers(self):
        logger, buffer = create_string_logger(LogLevel.SUMMARY)

        def worker(n):
            for i in range(50):
                logger.log_item_failure(f"{n}-{i}", "catalog_miss", "x")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(logger.entries) == 400
        assert len(buffer.getvalue().splitlines()) == 400

