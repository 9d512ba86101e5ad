"""Общие хелперы для тестов health-сервера."""
from tests.conftest import make_reporter


def make_app(reporter=None, metrics=None):
    """Создать FastAPI app с моком репортера."""
    from scrapeworker.api.app import create_app
    from scrapeworker.metrics import ServiceMetrics

    return create_app(
        reporter=reporter or make_reporter(),
        metrics=metrics or ServiceMetrics(),
    )
