import logging
from pathlib import Path
from typing import Any, Optional, Union

from enhanced_fetch.config.profiles import load_profile
from enhanced_fetch.config.settings import Settings, get_settings
from enhanced_fetch.execution.executor import RequestExecutor
from enhanced_fetch.execution.http_client import Transport
from enhanced_fetch.models.request import RequestConfig

logger = logging.getLogger(__name__)


async def fetch_enhanced(
    url: str,
    config: Optional[RequestConfig] = None,
    *,
    transport: Optional[Transport] = None,
    settings: Optional[Settings] = None,
    **options: Any,
) -> Any:
    """
    Точка входа: один запрос с ретраями, таймаутом и декодированием ответа.

    Опции можно передать готовым RequestConfig или именованными аргументами:
        await fetch_enhanced(url, method="post", body={"a": 1}, retries=5)
    """
    settings = settings or get_settings()
    if config is None:
        config = RequestConfig.from_settings(settings, **options)
    elif options:
        config = RequestConfig.model_validate({**dict(config), **options})

    executor = RequestExecutor(transport=transport, settings=settings)
    return await executor.execute(url, config)


def config_from_profile(
    path: Union[str, Path],
    name: str,
    settings: Optional[Settings] = None,
    **overrides: Any,
) -> RequestConfig:
    """RequestConfig из YAML-пресета; явные overrides важнее пресета."""
    options = load_profile(path, name)
    options.update(overrides)
    logger.debug(f"Loaded profile '{name}' from {path}: {sorted(options)}")
    return RequestConfig.from_settings(settings or get_settings(), **options)
