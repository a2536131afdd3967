"""Metrics collection observer."""

import asyncio
import json
from typing import Any

from .base import BaseObserver, ProcessingEvent


class MetricsObserver(BaseObserver):
    """Collect metrics for monitoring (safe under concurrent item tasks)."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = {
            "items_processed": 0,
            "items_succeeded": 0,
            "items_failed": 0,
            "items_cancelled": 0,
            "retries": 0,
            "batches_completed": 0,
            "runs_aborted": 0,
            "processing_times": [],
            "error_counts": {},
        }
        self._lock = asyncio.Lock()

    async def on_event(
        self,
        event: ProcessingEvent,
        data: dict[str, Any],
    ) -> None:
        """Collect metrics from events."""
        async with self._lock:
            if event == ProcessingEvent.ITEM_SUCCEEDED:
                self.metrics["items_processed"] += 1
                self.metrics["items_succeeded"] += 1
                if "duration" in data:
                    self.metrics["processing_times"].append(data["duration"])

            elif event == ProcessingEvent.ITEM_FAILED:
                self.metrics["items_processed"] += 1
                self.metrics["items_failed"] += 1
                error_type = type(data["error"]).__name__
                self.metrics["error_counts"][error_type] = (
                    self.metrics["error_counts"].get(error_type, 0) + 1
                )

            elif event == ProcessingEvent.ITEM_CANCELLED:
                self.metrics["items_cancelled"] += 1

            elif event == ProcessingEvent.ITEM_RETRY:
                self.metrics["retries"] += 1

            elif event == ProcessingEvent.BATCH_COMPLETED:
                self.metrics["batches_completed"] += 1

            elif event == ProcessingEvent.RUN_ABORTED:
                self.metrics["runs_aborted"] += 1

    async def get_metrics(self) -> dict[str, Any]:
        """Get collected metrics with computed statistics."""
        async with self._lock:
            processing_times = self.metrics["processing_times"]
            return {
                **self.metrics,
                "error_counts": dict(self.metrics["error_counts"]),
                "avg_processing_time": (
                    sum(processing_times) / len(processing_times) if processing_times else 0
                ),
                "success_rate": (
                    self.metrics["items_succeeded"] / self.metrics["items_processed"]
                    if self.metrics["items_processed"] > 0
                    else 0
                ),
            }

    def reset(self) -> None:
        """Reset all metrics."""
        self.__init__()

    async def export_json(self) -> str:
        """Export metrics as JSON string.

        Returns:
            JSON string containing all metrics and computed statistics
        """
        metrics = await self.get_metrics()
        # Keep the export small: the count instead of every duration
        export_data = {
            **metrics,
            "processing_times_count": len(metrics.get("processing_times", [])),
        }
        export_data.pop("processing_times", None)
        return json.dumps(export_data, indent=2)

    async def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format.

        Returns:
            Prometheus-formatted metrics string

        Example:
            >>> prom_text = await observer.export_prometheus()
            >>> print(prom_text)
            # HELP batch_runner_items_processed Total items processed
            # TYPE batch_runner_items_processed counter
            batch_runner_items_processed 100
            ...
        """
        metrics = await self.get_metrics()

        lines = []

        counters = [
            ("items_processed", "Total items processed"),
            ("items_succeeded", "Total items succeeded"),
            ("items_failed", "Total items failed"),
            ("items_cancelled", "Total items cancelled"),
            ("retries", "Total retry attempts scheduled"),
            ("batches_completed", "Total batches completed"),
            ("runs_aborted", "Total runs aborted on a terminal failure"),
        ]

        for metric_name, help_text in counters:
            lines.append(f"# HELP batch_runner_{metric_name} {help_text}")
            lines.append(f"# TYPE batch_runner_{metric_name} counter")
            lines.append(f"batch_runner_{metric_name} {metrics.get(metric_name, 0)}")
            lines.append("")

        gauges = [
            ("avg_processing_time", "Average successful item time in seconds"),
            ("success_rate", "Success rate (0.0 to 1.0)"),
        ]

        for metric_name, help_text in gauges:
            lines.append(f"# HELP batch_runner_{metric_name} {help_text}")
            lines.append(f"# TYPE batch_runner_{metric_name} gauge")
            lines.append(f"batch_runner_{metric_name} {metrics.get(metric_name, 0)}")
            lines.append("")

        error_counts = metrics.get("error_counts", {})
        if error_counts:
            lines.append("# HELP batch_runner_errors_total Total terminal failures by error type")
            lines.append("# TYPE batch_runner_errors_total counter")
            for error_type, count in error_counts.items():
                safe_type = error_type.replace('"', '\\"')
                lines.append(f'batch_runner_errors_total{{error_type="{safe_type}"}} {count}')
            lines.append("")

        return "\n".join(lines)

    async def export_dict(self) -> dict[str, Any]:
        """Export metrics as a dictionary."""
        return await self.get_metrics()
