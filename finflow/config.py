"""Environment-based settings shared by the CLI and the web API."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    currency: str = "INR"
    # Allowed gap (in periods) between a supplied tenure and the one implied
    # by a supplied installment amount.
    tenure_tolerance: int = 1
    max_schedule_rows: int = 120

    @staticmethod
    def from_env() -> "Settings":
        try:
            tolerance = int(os.environ.get("FINFLOW_TENURE_TOLERANCE", "1"))
            max_rows = int(os.environ.get("FINFLOW_MAX_SCHEDULE_ROWS", "120"))
        except ValueError as exc:
            raise RuntimeError(f"Invalid numeric setting: {exc}") from exc
        if tolerance < 0:
            raise RuntimeError("FINFLOW_TENURE_TOLERANCE must not be negative")
        return Settings(
            log_level=os.environ.get("FINFLOW_LOG_LEVEL", "INFO"),
            currency=os.environ.get("FINFLOW_CURRENCY", "INR").upper(),
            tenure_tolerance=tolerance,
            max_schedule_rows=max_rows,
        )
