"""PubSubSettings — required setup values, validated before any broker call."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .envelope import DEFAULT_ORIGIN
from .exceptions import ConfigurationError

ENV_PREFIX = "PUBSUB_"

_REQUIRED = {
    "project_id": "PUBSUB_PROJECT_ID",
    "topic_name": "PUBSUB_TOPIC",
    "credentials": "PUBSUB_CREDENTIALS",
}

_OPTIONAL = {
    "origin": "PUBSUB_ORIGIN",
    "max_concurrent_deliveries": "PUBSUB_MAX_CONCURRENT_DELIVERIES",
    "queue_size": "PUBSUB_QUEUE_SIZE",
    "retry_max_attempts": "PUBSUB_RETRY_MAX_ATTEMPTS",
    "retry_delay": "PUBSUB_RETRY_DELAY",
}


class PubSubSettings(BaseModel):
    """Setup values for one process: project, topic, subscriptions, credentials.

    ``credentials`` is opaque to the core; broker adapters interpret it (the
    RabbitMQ adapter expects an AMQP URL).
    """

    model_config = ConfigDict(frozen=True)

    project_id: str = Field(..., min_length=1)
    topic_name: str = Field(..., min_length=1)
    subscription_names: tuple[str, ...] = Field(..., min_length=1)
    credentials: str = Field(..., min_length=1, repr=False)
    origin: str = DEFAULT_ORIGIN
    max_concurrent_deliveries: int = Field(default=10, ge=1)
    queue_size: int = Field(default=100, ge=1)
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)

    @field_validator("subscription_names")
    @classmethod
    def _no_blank_names(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if any(not name.strip() for name in value):
            raise ValueError("subscription names must not be blank")
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PubSubSettings:
        """Build settings from environment variables.

        Required: ``PUBSUB_PROJECT_ID``, ``PUBSUB_TOPIC``, ``PUBSUB_CREDENTIALS``
        and either ``PUBSUB_SUBSCRIPTIONS`` (comma-separated) or numbered
        ``PUBSUB_SUBSCRIPTION_1`` .. ``PUBSUB_SUBSCRIPTION_N``.

        Raises:
            ConfigurationError: listing every missing key, or on invalid values.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        missing: list[str] = []

        for field, key in _REQUIRED.items():
            value = env.get(key, "").strip()
            if value:
                values[field] = value
            else:
                missing.append(key)

        subscriptions = _subscription_names(env)
        if subscriptions:
            values["subscription_names"] = subscriptions
        else:
            missing.append(f"{ENV_PREFIX}SUBSCRIPTIONS")

        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing),
                missing=missing,
            )

        for field, key in _OPTIONAL.items():
            value = env.get(key, "").strip()
            if value:
                values[field] = value

        try:
            return cls.model_validate(values)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def _subscription_names(env: Mapping[str, str]) -> tuple[str, ...]:
    listed = env.get(f"{ENV_PREFIX}SUBSCRIPTIONS", "")
    names = [name.strip() for name in listed.split(",") if name.strip()]
    index = 1
    while True:
        name = env.get(f"{ENV_PREFIX}SUBSCRIPTION_{index}", "").strip()
        if not name:
            break
        if name not in names:
            names.append(name)
        index += 1
    return tuple(names)
