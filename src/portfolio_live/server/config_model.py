r"""Pydantic model to enable server configuration to be loaded from file.

The `.RelayConfig` model describes every setting of a `.RelayServer`\ . It is
used by the `.cli` module to start servers based on configuration files or
strings, and may also be constructed directly in Python.
"""

import logging

from pydantic import BaseModel, Field, field_validator

from ..broker import DEFAULT_SUBSCRIBER_BUFFER_SIZE
from ..store import DEFAULT_BUFFER_SIZE


class RelayConfig(BaseModel):
    r"""The configuration parameters for a `.RelayServer`\ ."""

    notification_buffer_size: int = Field(
        default=DEFAULT_BUFFER_SIZE,
        ge=1,
        description="The number of recent notifications retained on each topic.",
    )

    subscriber_buffer_size: int = Field(
        default=DEFAULT_SUBSCRIBER_BUFFER_SIZE,
        ge=1,
        description=(
            """The number of undelivered notifications each subscriber may queue.

            Once a subscriber's queue is full, further notifications are
            dropped for that subscriber until it catches up.
            """
        ),
    )

    notification_display_seconds: float = Field(
        default=5.0,
        gt=0,
        description=(
            "How long clients should display a notification before hiding it."
        ),
    )

    allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to make cross-origin requests.",
    )

    log_level: str = Field(
        default="INFO",
        description="The level of the `portfolio_live` logger.",
    )

    @field_validator("log_level", mode="after")
    @classmethod
    def check_log_level(cls, level: str) -> str:
        """Check the log level is one that `logging` understands.

        :param level: The validated value of the field.

        :return: The level name, in upper case.

        :raises ValueError: if the level is not recognised.
        """
        level = level.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"'{level}' is not a valid log level.")
        return level
