"""Build content generators for a selected auth method."""

from __future__ import annotations

import logging
import os
from typing import Mapping

from contentgw.core.auth import AuthType, validate_auth_method
from contentgw.core.config import ContentGeneratorConfig, Settings
from contentgw.llm.base import ContentGenerator
from contentgw.llm.openai_provider import OpenAIContentGenerator
from contentgw.llm.zhipu_provider import ZhipuContentGenerator

logger = logging.getLogger(__name__)

# (api key, model, base url) environment variables per auth method.
_PROVIDER_ENV = {
    AuthType.USE_OPENAI: ("OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_BASE_URL"),
    AuthType.USE_ZHIPU: ("ZHIPU_API_KEY", "ZHIPU_MODEL", "ZHIPU_BASE_URL"),
}


def create_content_generator_config(
    settings: Settings,
    auth_type: AuthType,
    environ: Mapping[str, str] | None = None,
) -> ContentGeneratorConfig:
    """Resolve connection settings; environment variables win over settings."""
    env = os.environ if environ is None else environ
    error = validate_auth_method(auth_type, env)
    if error:
        raise ValueError(error)

    key_var, model_var, base_url_var = _PROVIDER_ENV[auth_type]
    provider = settings.openai if auth_type == AuthType.USE_OPENAI else settings.zhipu
    return ContentGeneratorConfig(
        model=env.get(model_var) or provider.model,
        api_key=env[key_var],
        auth_type=auth_type,
        base_url=env.get(base_url_var) or provider.base_url,
        embedding_model=provider.embedding_model,
        timeout=settings.http.timeout,
    )


def create_content_generator(config: ContentGeneratorConfig) -> ContentGenerator:
    """Return the generator implementation for ``config.auth_type``."""
    logger.info("Using %s content generator with model %s", config.auth_type.value, config.model)
    if config.auth_type == AuthType.USE_ZHIPU:
        return ZhipuContentGenerator(config)
    if config.auth_type == AuthType.USE_OPENAI:
        return OpenAIContentGenerator(config)
    raise ValueError(f"Unsupported auth type: {config.auth_type}")
