"""Configuration for the subscriber service."""

import os

from pydantic import BaseModel, Field


class SubscriberSettings(BaseModel):
    """Settings for the WebSub subscriber.

    Built once at startup and handed to every component that needs it; the
    model is frozen so the public host cannot change under a running app.
    """

    # Public origin the hub uses to reach us, e.g. https://sub.example.com
    host: str = Field(default="", env="WEBSUB_HOST")
    path_prefix: str = Field(default="", env="WEBSUB_PATH_PREFIX")

    # Database settings
    database_dsn: str = Field(default="sqlite:///./websub.db", env="DATABASE_DSN")

    # Outbound HTTP settings
    http_timeout: float = Field(default=10.0, env="HTTP_TIMEOUT")
    user_agent: str = Field(default="websub-subscriber/0.1.0", env="USER_AGENT")

    # Request limits
    max_body_bytes: int = Field(default=1048576, env="MAX_BODY_BYTES")  # 1 MiB

    # Basic app settings
    debug: bool = Field(default=False, env="DEBUG")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    model_config = {
        "frozen": True,
        "env_file": ".env.websub",
        "env_file_encoding": "utf-8"
    }

    def callback_base(self) -> str:
        """Return the URL prefix every callback URL starts with."""
        return f"{self.host.rstrip('/')}{self.path_prefix.rstrip('/')}/callback"


def load_subscriber_settings() -> SubscriberSettings:
    """Load subscriber settings from .env.websub and environment variables."""
    env_vars = {}

    # Read from .env.websub if it exists
    env_file = ".env.websub"
    if os.path.exists(env_file):
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    env_vars[key.strip()] = value.strip()

    # Override with actual environment variables
    for key, default in (
        ('WEBSUB_HOST', ''),
        ('WEBSUB_PATH_PREFIX', ''),
        ('DATABASE_DSN', 'sqlite:///./websub.db'),
        ('HTTP_TIMEOUT', '10.0'),
        ('USER_AGENT', 'websub-subscriber/0.1.0'),
        ('MAX_BODY_BYTES', '1048576'),
        ('DEBUG', 'false'),
        ('LOG_LEVEL', 'INFO'),
    ):
        env_vars[key] = os.getenv(key, env_vars.get(key, default))

    return SubscriberSettings(
        host=env_vars['WEBSUB_HOST'],
        path_prefix=env_vars['WEBSUB_PATH_PREFIX'],
        database_dsn=env_vars['DATABASE_DSN'],
        http_timeout=float(env_vars['HTTP_TIMEOUT']),
        user_agent=env_vars['USER_AGENT'],
        max_body_bytes=int(env_vars['MAX_BODY_BYTES']),
        debug=env_vars['DEBUG'].lower() in ('true', '1', 'yes', 'on'),
        log_level=env_vars['LOG_LEVEL'],
    )
