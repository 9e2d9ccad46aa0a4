"""LLM instance and settings management.

This module provides a cache layer for LLM instances and CRUD helpers
for per-provider API key storage.
"""

import logging
import os
from typing import Dict, List, Optional

from cryptography.fernet import Fernet
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import ChatOpenAI
from sqlalchemy.orm import Session

from config import DEFAULT_LLM_PROVIDER, LLM_API_KEY_ENCRYPTION_KEY, LLM_PROVIDERS, TEMPERATURE
from core.exceptions import BadRequestError
from models.llm_provider_setting import LLMProviderSetting

logger = logging.getLogger(__name__)

_CIPHER = Fernet(LLM_API_KEY_ENCRYPTION_KEY.encode()) if LLM_API_KEY_ENCRYPTION_KEY else None
if not _CIPHER:
    logger.warning(
        "LLM_API_KEY_ENCRYPTION_KEY not set; API keys will be stored in plain text."
    )

# Shared across requests; keyed by "<user_id>:<provider>:<model>"
_ACTIVE_LLMS: Dict[str, BaseChatModel] = {}


class LLMManager:
    """Resolves chat models per user and stores their provider keys."""

    def __init__(self, db: Session, chat_model: Optional[BaseChatModel] = None) -> None:
        """Initialize LLMManager.

        Args:
            db: SQLAlchemy Session.
            chat_model: Optional model returned for every user instead of a
                provider-backed one.
        """
        self.db = db
        self.chat_model = chat_model

    def _encrypt_api_key(self, api_key: str) -> str:
        if _CIPHER:
            return _CIPHER.encrypt(api_key.encode()).decode()
        return api_key

    def _decrypt_api_key(self, encrypted_key: str) -> str:
        if _CIPHER:
            return _CIPHER.decrypt(encrypted_key.encode()).decode()
        return encrypted_key

    def _validate_provider(self, provider: str) -> None:
        if provider not in LLM_PROVIDERS:
            raise BadRequestError(f"Unsupported provider: {provider}")

    def _get_env_api_key(self, provider: str) -> Optional[str]:
        """Return provider API key from environment if set."""
        env_key = LLM_PROVIDERS.get(provider, {}).get("env_key")
        return os.getenv(env_key) if env_key else None

    def _get_setting(self, user_id: str, provider: str) -> Optional[LLMProviderSetting]:
        return (
            self.db.query(LLMProviderSetting)
            .filter(
                LLMProviderSetting.user_id == user_id,
                LLMProviderSetting.provider == provider,
            )
            .first()
        )

    def provider_status(self, user_id: str, provider: str) -> Dict[str, object]:
        """Return whether a key is available for one provider (never the key)."""
        self._validate_provider(provider)
        setting = self._get_setting(user_id, provider)
        source = "none"
        if setting and setting.api_key:
            source = "user"
        elif self._get_env_api_key(provider):
            source = "preset"
        return {
            "provider": provider,
            "has_api_key": source != "none",
            "source": source,
            "model": setting.model if setting else None,
        }

    def list_provider_statuses(self, user_id: str) -> List[Dict[str, object]]:
        """Return per-provider status for the user (no API keys)."""
        return [self.provider_status(user_id, provider) for provider in LLM_PROVIDERS]

    def save_provider_setting(
        self,
        user_id: str,
        provider: str,
        api_key: str,
        model: Optional[str] = None,
    ) -> None:
        """Upsert a provider setting for the user."""
        self._validate_provider(provider)
        encrypted_key = self._encrypt_api_key(api_key.strip())
        setting = self._get_setting(user_id, provider)
        if setting:
            setting.api_key = encrypted_key
            setting.model = model
        else:
            setting = LLMProviderSetting(
                user_id=user_id,
                provider=provider,
                api_key=encrypted_key,
                model=model,
            )
            self.db.add(setting)
        self.db.commit()
        self.invalidate_user(user_id)
        logger.info("Saved %s API key for user %s", provider, user_id)

    def delete_provider_setting(self, user_id: str, provider: str) -> None:
        """Delete a provider setting for the user."""
        self._validate_provider(provider)
        setting = self._get_setting(user_id, provider)
        if setting:
            self.db.delete(setting)
            self.db.commit()
        self.invalidate_user(user_id)

    def get_llm(
        self,
        user_id: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> BaseChatModel:
        """Get an LLM instance for the user and provider/model.

        The user's stored key wins over the environment preset.

        Raises:
            BadRequestError: If the provider is unknown or no key is available.
        """
        if self.chat_model is not None:
            return self.chat_model

        resolved_provider = provider or DEFAULT_LLM_PROVIDER
        self._validate_provider(resolved_provider)

        cache_key = f"{user_id}:{resolved_provider}:{model or 'default'}"
        cached = _ACTIVE_LLMS.get(cache_key)
        if cached:
            return cached

        setting = self._get_setting(user_id, resolved_provider)
        if setting:
            api_key = self._decrypt_api_key(setting.api_key)
            resolved_model = (
                model or setting.model or LLM_PROVIDERS[resolved_provider]["default_model"]
            )
        else:
            api_key = self._get_env_api_key(resolved_provider)
            resolved_model = model or LLM_PROVIDERS[resolved_provider]["default_model"]

        if not api_key:
            raise BadRequestError(
                f"No API key configured for provider '{resolved_provider}'"
            )

        base_url = LLM_PROVIDERS[resolved_provider]["base_url"]
        kwargs = {
            "model": resolved_model,
            "api_key": api_key,
            "temperature": TEMPERATURE,
        }
        if base_url:
            kwargs["base_url"] = base_url

        llm = ChatOpenAI(**kwargs)
        _ACTIVE_LLMS[cache_key] = llm
        return llm

    def invalidate_user(self, user_id: str) -> None:
        """Invalidate all cached LLMs for the user."""
        keys_to_remove = [k for k in _ACTIVE_LLMS if k.startswith(f"{user_id}:")]
        for key in keys_to_remove:
            del _ACTIVE_LLMS[key]
