"""Connection settings and chatbot profiles.

Settings come from the environment, optionally seeded from a .env file:

    LANGFLOW_ENDPOINT_URL    Langflow server (required)
    LANGFLOW_API_KEY         Bearer token for the Langflow API (optional)
    LANGFLOW_CHAT_PROXY_URL  Chat proxy base (default: <endpoint>/api/langflow)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError
from .types import SenderConfig

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = Path(".env.local")
PROXY_BASE_API_PATH = "/api/langflow"

DEFAULT_ENABLE_STREAM = True
DEFAULT_DATETIME_FORMAT = "%H:%M"
DEFAULT_USER_SENDER = "Me"
DEFAULT_BOT_SENDER = "Assistant"
DEFAULT_ERROR_SENDER = "Error"
DEFAULT_SYSTEM_SENDER = "System"


@dataclass(frozen=True, slots=True)
class ConnectionSettings:
    """Where the Langflow server and the chat proxy live."""

    endpoint_url: str
    api_key: str | None = None
    proxy_base_url: str = ""

    @property
    def chat_base_url(self) -> str:
        if self.proxy_base_url:
            return self.proxy_base_url.rstrip("/")
        return self.endpoint_url.rstrip("/") + PROXY_BASE_API_PATH


class Profile(BaseModel):
    """A chatbot profile bound to one Langflow flow.

    flow_id may be a canonical flow UUID or a human-readable name/endpoint
    alias; FlowIdentifierResolver rewrites aliases in place.
    """

    model_config = ConfigDict(populate_by_name=True)

    profile_id: str = Field(alias="profileId")
    flow_id: str = Field(alias="flowId")
    enable_stream: bool = Field(default=DEFAULT_ENABLE_STREAM, alias="enableStream")
    user_sender: str = Field(default=DEFAULT_USER_SENDER, alias="userSender")
    bot_sender: str = Field(default=DEFAULT_BOT_SENDER, alias="botSender")
    error_sender: str = Field(default=DEFAULT_ERROR_SENDER, alias="errorSender")
    system_sender: str = Field(default=DEFAULT_SYSTEM_SENDER, alias="systemSender")
    welcome_message: str | None = Field(default=None, alias="welcomeMessage")
    datetime_format: str = Field(default=DEFAULT_DATETIME_FORMAT, alias="datetimeFormat")

    @property
    def senders(self) -> SenderConfig:
        return SenderConfig(
            user=self.user_sender,
            bot=self.bot_sender,
            error=self.error_sender,
            system=self.system_sender,
        )


def load_settings(env_file: str | Path | None = None) -> ConnectionSettings:
    """Load connection settings from the environment.

    Args:
        env_file: .env file to load first (default: .env.local). Values already
            present in the environment win.

    Raises:
        ConfigurationError: if LANGFLOW_ENDPOINT_URL is not set
    """
    path = Path(env_file) if env_file is not None else DEFAULT_ENV_FILE
    if path.exists():
        load_dotenv(path, override=False)
        logger.debug("Loaded environment from %s", path)

    endpoint_url = os.environ.get("LANGFLOW_ENDPOINT_URL", "").strip()
    if not endpoint_url:
        raise ConfigurationError(
            "Langflow endpoint URL is not defined in environment variable LANGFLOW_ENDPOINT_URL."
        )

    api_key = os.environ.get("LANGFLOW_API_KEY", "").strip() or None
    proxy_base_url = os.environ.get("LANGFLOW_CHAT_PROXY_URL", "").strip()

    logger.info("Using Langflow endpoint %s", endpoint_url)
    return ConnectionSettings(
        endpoint_url=endpoint_url,
        api_key=api_key,
        proxy_base_url=proxy_base_url,
    )
