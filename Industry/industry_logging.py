"""
Structured logging for cost resolution and profit ranking.

Verbosity levels:
    - MINIMAL: Ranking results and per-item failures
    - SUMMARY: Configuration overview and resolved totals
    - DETAILED: Cost tree tables, invention breakdowns
    - DEBUG: Every built node as it is constructed
    - TRACE: Everything including bought leaves

Usage:
    from Industry.industry_logging import IndustryLogger, LogLevel

    logger = IndustryLogger(level=LogLevel.DETAILED)
    resolver = BOMResolver(catalog, market, facilities, logger=logger)
    # ... resolver and ranker report through the logger
    print(logger.to_string())
"""
from __future__ import annotations

import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from io import StringIO
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, TextIO, Tuple, Union

from .models import CostNode, InventionOutcome, ProfitReport, UnitSource

if TYPE_CHECKING:
    from .config import IndustryConfig


class LogLevel(IntEnum):
    """Verbosity levels for industry logging."""
    SILENT = 0      # No output at all
    MINIMAL = 10    # Ranking results and failures
    SUMMARY = 20    # Configuration overview and key totals
    DETAILED = 30   # Cost tree tables, invention breakdowns
    DEBUG = 40      # Node-by-node resolution
    TRACE = 50      # Everything including bought leaves


@dataclass
class LogEntry:
    """A single log entry with metadata."""
    timestamp: datetime
    level: LogLevel
    category: str
    message: str
    data: Optional[Dict[str, Any]] = None

    def format(self, include_timestamp: bool = True, include_level: bool = True) -> str:
        """Format the log entry as a string."""
        parts = []
        if include_timestamp:
            parts.append(f"[{self.timestamp.strftime('%H:%M:%S.%f')[:-3]}]")
        if include_level:
            parts.append(f"[{self.level.name:8}]")
        parts.append(f"[{self.category}]")
        parts.append(self.message)
        return " ".join(parts)


def _fmt_value(value: Optional[float], fmt: str = ",.2f") -> str:
    return "unknown" if value is None else format(value, fmt)


@dataclass
class IndustryLogger:
    """
    Structured logger shared by the resolver, normalizer and ranker.

    Entries are collected in memory and echoed to an output stream and an
    optional file. Writes are serialized so worker threads of a ranking pass
    can share one logger.

    Attributes
    ----------
    level : LogLevel
        Minimum level to log (entries above this level are ignored)
    output : TextIO | None
        Output stream (defaults to sys.stdout)
    log_to_file : Path | None
        Optional path to also write logs to a file
    entries : list[LogEntry]
        All logged entries (for programmatic access)
    """
    level: LogLevel = LogLevel.SUMMARY
    output: Optional[TextIO] = None
    log_to_file: Optional[Path] = None
    include_timestamp: bool = True
    include_level: bool = True
    entries: List[LogEntry] = field(default_factory=list)
    _file_handle: Optional[TextIO] = field(default=None, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def __post_init__(self):
        if self.output is None:
            self.output = sys.stdout
        if self.log_to_file:
            self._file_handle = open(self.log_to_file, "w", encoding="utf-8")

    def close(self):
        """Close the file handle if opened."""
        with self._lock:
            if self._file_handle:
                self._file_handle.close()
                self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _log(self, level: LogLevel, category: str, message: str,
             data: Optional[Dict[str, Any]] = None) -> None:
        """Internal method to record and output a log entry."""
        if level > self.level:
            return

        entry = LogEntry(
            timestamp=datetime.now(),
            level=level,
            category=category,
            message=message,
            data=data,
        )
        formatted = entry.format(self.include_timestamp, self.include_level)
        with self._lock:
            self.entries.append(entry)
            if self.output:
                self.output.write(formatted + "\n")
                self.output.flush()
            if self._file_handle:
                self._file_handle.write(formatted + "\n")
                self._file_handle.flush()

    def _log_table(self, level: LogLevel, category: str,
                   headers: List[str], rows: List[List[Any]],
                   title: Optional[str] = None) -> None:
        """Log a formatted table as one contiguous block."""
        if level > self.level:
            return

        all_rows = [headers] + rows
        widths = [max(len(str(row[i])) for row in all_rows) for i in range(len(headers))]

        lines = []
        if title:
            lines.append(title)
            lines.append("=" * len(title))

        header_line = " | ".join(str(h).ljust(w) for h, w in zip(headers, widths))
        lines.append(header_line)
        lines.append("-" * len(header_line))

        for row in rows:
            lines.append(" | ".join(str(v).ljust(w) for v, w in zip(row, widths)))

        # Hold the (reentrant) lock so tables from different threads do not interleave
        with self._lock:
            for line in lines:
                self._log(level, category, line)

    # -------------------------------------------------------------------------
    # Configuration Logging
    # -------------------------------------------------------------------------

    def log_config(self, config: "IndustryConfig") -> None:
        """Log a configuration overview."""
        self._log(LogLevel.SUMMARY, "CONFIG",
                  f"Default facility: {config.default_facility or 'none'}, "
                  f"{len(config.facilities)} facilities, {len(config.items)} registered items")
        self._log(LogLevel.SUMMARY, "CONFIG",
                  f"Blueprints: ME {config.manufacturing.material_efficiency}, "
                  f"TE {config.manufacturing.time_efficiency}; "
                  f"ranking with {config.ranking.workers or 'default'} workers, "
                  f"timeout {config.ranking.timeout_seconds:.0f}s")

        if self.level >= LogLevel.DETAILED and config.skills.levels:
            rows = [[name, lvl] for name, lvl in sorted(config.skills.levels.items())]
            self._log_table(LogLevel.DETAILED, "CONFIG", ["Skill", "Level"], rows,
                            title="Trained Skills")

    # -------------------------------------------------------------------------
    # Resolution Logging
    # -------------------------------------------------------------------------

    def log_node_built(self, node: CostNode, depth: int = 0) -> None:
        """Log a built node (DEBUG) and its bought leaves (TRACE)."""
        if self.level < LogLevel.DEBUG:
            return

        indent = "  " * depth
        self._log(LogLevel.DEBUG, "RESOLVE",
                  f"{indent}Built {node.item.name} x{node.quantity}: "
                  f"{node.runs} runs, ME {node.material_efficiency}, "
                  f"cost={node.cost:,.2f}, job={node.job_cost:,.2f}")

        if self.level >= LogLevel.TRACE:
            for child in node.children:
                if child.source is UnitSource.BUY:
                    self._log(LogLevel.TRACE, "RESOLVE",
                              f"{indent}  Bought {child.item.name} x{child.quantity} "
                              f"@ {child.unit_cost:,.2f}")

    def log_resolution(self, node: CostNode, facility_id: str) -> None:
        """Log the result of resolving one requested item."""
        self._log(LogLevel.SUMMARY, "RESOLVE",
                  f"Resolved {node.item.name} x{node.quantity} at {facility_id}: "
                  f"materials={node.cost:,.2f}, jobs={node.total_job_cost:,.2f}, "
                  f"time={node.time / 3600:.2f}h")
        self.log_cost_tree(node)

    def log_cost_tree(self, node: CostNode) -> None:
        """Log a flattened cost tree table."""
        if self.level < LogLevel.DETAILED:
            return

        rows = []
        for depth, current in node.walk():
            rows.append([
                "  " * depth + current.item.name,
                current.source.value,
                current.quantity,
                f"{current.unit_cost:,.2f}",
                f"{current.cost:,.2f}",
                current.runs or "",
            ])

        self._log_table(LogLevel.DETAILED, "RESOLVE",
                        ["Item", "Source", "Qty", "Unit", "Total", "Runs"],
                        rows, title=f"Cost Tree: {node.item.name}")

    def log_invention(self, product_id: str, outcome: InventionOutcome) -> None:
        """Log an invention outcome."""
        self._log(LogLevel.DETAILED, "INVENT",
                  f"{product_id}: p={outcome.probability:.2%}, "
                  f"attempt={outcome.attempt_cost:,.2f}, "
                  f"expected={outcome.expected_cost:,.2f} over {outcome.expected_attempts:.2f} attempts, "
                  f"{outcome.runs_per_copy} runs/copy (ME {outcome.material_efficiency}, "
                  f"TE {outcome.time_efficiency})")

    # -------------------------------------------------------------------------
    # Ranking Logging
    # -------------------------------------------------------------------------

    def log_ranking_start(self, num_items: int, workers: int) -> None:
        """Log the start of a ranking pass."""
        self._log(LogLevel.SUMMARY, "RANK",
                  f"Ranking {num_items} items with {workers} workers")

    def log_item_failure(self, item_id: str, status: str, error: str,
                         level: LogLevel = LogLevel.SUMMARY) -> None:
        """Log an item that could not be resolved."""
        self._log(level, "RANK", f"{item_id}: {status} ({error})",
                  data={"item_id": item_id, "status": status})

    def log_ranking(self, reports: Sequence[ProfitReport], top_n: int = 20) -> None:
        """Log a ranking summary and its top rows."""
        resolved = sum(1 for r in reports if r.is_resolved)
        self._log(LogLevel.MINIMAL, "RANK",
                  f"Ranking complete: {resolved} resolved, "
                  f"{len(reports) - resolved} unresolved")

        if self.level < LogLevel.DETAILED or not reports:
            return

        rows = []
        for i, report in enumerate(reports[:top_n], start=1):
            rows.append([
                i,
                report.item.name,
                report.status.value,
                _fmt_value(report.profit_per_run),
                _fmt_value(report.profit_per_hour),
                _fmt_value(report.traded_volume, ",.1f"),
            ])
        if len(reports) > top_n:
            rows.append(["...", f"({len(reports) - top_n} more)", "", "", "", ""])

        self._log_table(LogLevel.DETAILED, "RANK",
                        ["#", "Item", "Status", "Profit/Run", "Profit/h", "Volume"],
                        rows, title="Profitability Ranking")

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def get_all_entries(self) -> List[LogEntry]:
        """Return all logged entries."""
        with self._lock:
            return self.entries.copy()

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        """Return entries at or below a specific level."""
        return [e for e in self.get_all_entries() if e.level <= level]

    def get_entries_by_category(self, category: str) -> List[LogEntry]:
        """Return entries matching a category."""
        return [e for e in self.get_all_entries() if e.category == category]

    def to_string(self, level: Optional[LogLevel] = None) -> str:
        """Format all entries to a string."""
        entries = self.get_all_entries() if level is None else self.get_entries_by_level(level)
        return "\n".join(e.format(self.include_timestamp, self.include_level)
                         for e in entries)

    def clear(self) -> None:
        """Clear all logged entries."""
        with self._lock:
            self.entries.clear()


def create_logger(
    level: Union[LogLevel, str, int] = LogLevel.SUMMARY,
    output: Optional[TextIO] = None,
    log_file: Optional[Path] = None,
) -> IndustryLogger:
    """
    Factory function to create an IndustryLogger.

    Parameters
    ----------
    level : LogLevel | str | int
        Verbosity level. Can be LogLevel enum, string name, or integer.
    output : TextIO | None
        Output stream. Defaults to sys.stdout.
    log_file : Path | None
        Optional path to write logs to file.
    """
    if isinstance(level, str):
        level = LogLevel[level.upper()]
    elif isinstance(level, int) and not isinstance(level, LogLevel):
        level = LogLevel(level)

    return IndustryLogger(
        level=level,
        output=output,
        log_to_file=log_file,
    )


def create_string_logger(level: LogLevel = LogLevel.DETAILED) -> Tuple[IndustryLogger, StringIO]:
    """
    Create a logger that writes to a string buffer.

    Returns
    -------
    tuple[IndustryLogger, StringIO]
        The logger and the buffer it writes to
    """
    buffer = StringIO()
    logger = IndustryLogger(level=level, output=buffer)
    return logger, buffer
