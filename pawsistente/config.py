"""Runtime configuration, read from the environment (and an optional .env)."""

from __future__ import annotations

import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel

from pawsistente.domain.models import Language

load_dotenv()

DEFAULT_STORAGE_KEY = "pawsistente-app-state"
DEFAULT_STALE_DAYS = 7


class Settings(BaseModel):
    schedule_csv: str = "data/schedule.csv"
    state_file: str = ".pawsistente/state.json"
    storage_key: str = DEFAULT_STORAGE_KEY
    stale_days: int = DEFAULT_STALE_DAYS
    timezone: str = "America/Mexico_City"
    calendar_name: str = "Confuror 2025"
    calendar_domain: str = "confuror.mx"
    log_level: str = "INFO"
    language: Language = Language.ES

    @property
    def max_state_age(self) -> timedelta:
        return timedelta(days=self.stale_days)

    @classmethod
    def from_env(cls) -> Settings:
        defaults = cls()
        return cls(
            schedule_csv=os.getenv("PAWSISTENTE_SCHEDULE_CSV", defaults.schedule_csv),
            state_file=os.getenv("PAWSISTENTE_STATE_FILE", defaults.state_file),
            storage_key=os.getenv("PAWSISTENTE_STORAGE_KEY", defaults.storage_key),
            stale_days=int(os.getenv("PAWSISTENTE_STALE_DAYS", defaults.stale_days)),
            timezone=os.getenv("PAWSISTENTE_TIMEZONE", defaults.timezone),
            calendar_name=os.getenv(
                "PAWSISTENTE_CALENDAR_NAME", defaults.calendar_name
            ),
            calendar_domain=os.getenv(
                "PAWSISTENTE_CALENDAR_DOMAIN", defaults.calendar_domain
            ),
            log_level=os.getenv("PAWSISTENTE_LOG_LEVEL", defaults.log_level),
            language=os.getenv("PAWSISTENTE_LANGUAGE", defaults.language),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
