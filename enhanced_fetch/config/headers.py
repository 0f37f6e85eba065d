from typing import Dict, Optional

from enhanced_fetch.config.settings import Settings, get_settings

# Базовые заголовки.
# ВАЖНО: Мы НЕ указываем "Accept-Encoding".
# httpx сам добавит "gzip, deflate, br" и автоматически распакует ответ.
BASE_HEADERS = {
    "Accept": "application/json, text/plain, */*",
}

# Заголовки, значения которых не должны попадать в debug-логи
SENSITIVE_HEADERS = frozenset({
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
})


def get_headers(settings: Optional[Settings] = None) -> Dict[str, str]:
    """Генерирует заголовки по умолчанию (User-Agent берется из настроек)"""
    settings = settings or get_settings()
    headers = BASE_HEADERS.copy()
    headers["User-Agent"] = settings.USER_AGENT
    return headers


def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Маскирует секреты перед логированием."""
    return {
        name: ("***" if name.lower() in SENSITIVE_HEADERS else value)
        for name, value in headers.items()
    }
