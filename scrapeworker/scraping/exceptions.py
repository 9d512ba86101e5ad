"""Кастомные исключения выполнения задачи."""


class ScrapeError(Exception):
    """Общая ошибка выполнения задачи — задача завершается со статусом failed."""

    # Имеет ли смысл повторять попытку (options.max_retries)
    retryable = False


class InvalidTaskError(ScrapeError):
    """Задача не может быть выполнена в принципе (битый URL и т.п.)."""


class FetchError(ScrapeError):
    """Статическая загрузка страницы не удалась (сеть, таймаут, не-2xx)."""

    retryable = True

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class NavigationError(ScrapeError):
    """Браузер не смог открыть страницу или дождаться нужного элемента."""

    retryable = True


class CaptchaError(ScrapeError):
    """Ошибка при прохождении CAPTCHA."""


class CaptchaConfigError(CaptchaError):
    """Солвер не настроен или нет ключа — ретрай бесполезен."""


class CaptchaSolveError(CaptchaError):
    """Провайдер отклонил задачу или вернул ошибку. Новая попытка = новый цикл."""

    retryable = True


class CaptchaTimeoutError(CaptchaSolveError):
    """Решение не получено за poll_interval × max_attempts."""
