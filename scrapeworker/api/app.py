"""FastAPI-приложение health-сервера воркера: /health, /ready, /metrics."""
from datetime import UTC, datetime

from fastapi import FastAPI, Response
from fastapi.responses import PlainTextResponse
from loguru import logger

from scrapeworker.api.schemas import HealthResponse, ReadyResponse
from scrapeworker.metrics import SERVICE_VERSION, ServiceMetrics
from scrapeworker.reporter import ReportError, StatusReporter

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def create_app(reporter: StatusReporter, metrics: ServiceMetrics) -> FastAPI:
    """Создать FastAPI-приложение с зависимостями."""
    app = FastAPI(title="Scrape Worker", version=SERVICE_VERSION)

    app.state.reporter = reporter
    app.state.metrics = metrics

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Liveness — процесс жив и event loop отвечает."""
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(UTC),
            version=SERVICE_VERSION,
            uptime_seconds=metrics.uptime_seconds(),
            tasks_in_flight=metrics.tasks_in_flight,
        )

    @app.get("/ready", response_model=ReadyResponse)
    async def ready(response: Response) -> ReadyResponse:
        """Readiness — управляющий API доступен, иначе 503."""
        try:
            await reporter.health_check()
        except ReportError as e:
            logger.warning(f"[health] Readiness check failed: {e}")
            response.status_code = 503
            return ReadyResponse(status="not_ready", error=str(e))
        return ReadyResponse(status="ready")

    @app.get("/metrics", response_class=PlainTextResponse)
    async def prometheus_metrics() -> PlainTextResponse:
        return PlainTextResponse(metrics.render_prometheus(), media_type=PROMETHEUS_CONTENT_TYPE)

    return app
