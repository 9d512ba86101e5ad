"""Счётчики процесса для /metrics."""
import time
from dataclasses import dataclass, field

SERVICE_VERSION = "1.0.0"


@dataclass
class ServiceMetrics:
    """Фиксированный набор счётчиков. Меняется только из event loop воркера."""

    started_at: float = field(default_factory=time.time)
    messages_received: int = 0
    messages_malformed: int = 0
    backpressure_rejections: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    tasks_in_flight: int = 0

    def uptime_seconds(self) -> int:
        return int(time.time() - self.started_at)

    def render_prometheus(self) -> str:
        """Экспорт в текстовом формате Prometheus."""
        rows = [
            ("scrapeworker_info", "gauge", "Information about the scraper worker",
             f'{{version="{SERVICE_VERSION}"}} 1'),
            ("scrapeworker_uptime_seconds", "counter", "Uptime in seconds",
             f" {self.uptime_seconds()}"),
            ("scrapeworker_messages_received_total", "counter", "Queue messages received",
             f" {self.messages_received}"),
            ("scrapeworker_messages_malformed_total", "counter", "Malformed queue messages dropped",
             f" {self.messages_malformed}"),
            ("scrapeworker_backpressure_rejections_total", "counter",
             "Tasks left in the queue because the job channel was full",
             f" {self.backpressure_rejections}"),
            ("scrapeworker_tasks_completed_total", "counter", "Tasks completed",
             f" {self.tasks_completed}"),
            ("scrapeworker_tasks_failed_total", "counter", "Tasks failed",
             f" {self.tasks_failed}"),
            ("scrapeworker_tasks_in_flight", "gauge", "Tasks currently being processed",
             f" {self.tasks_in_flight}"),
        ]
        lines: list[str] = []
        for name, kind, help_text, sample in rows:
            lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} {kind}")
            lines.append(f"{name}{sample}")
        return "\n".join(lines) + "\n"
