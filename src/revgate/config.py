"""Ledger parameters — supply ceiling, lock period, approval threshold.

Parameters are an explicit immutable object handed to the service at
construction. Nothing reads ambient globals, so tests can run the same
engine with a tiny supply ceiling or a zero lock period.

Sources, lowest precedence first:
1. Built-in defaults.
2. A JSON parameter file (config/ledger_params.json).
3. REVGATE_* environment variables, optionally loaded from a .env file.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv


DEFAULT_CURRENCIES = ("USD", "STX", "OIL")

_ENV_PREFIX = "REVGATE_"


@dataclass(frozen=True)
class LedgerConfig:
    """Immutable ledger parameters."""
    max_supply: int = 1_000_000_000_000
    lock_period: int = 1440
    threshold_percent: int = 50
    currencies: tuple[str, ...] = DEFAULT_CURRENCIES
    treasury_account: str = "treasury"
    audit_release: bool = False

    def validate(self) -> list[str]:
        """Return a list of problems. Empty means the parameters are usable."""
        errors: list[str] = []
        if self.max_supply <= 0:
            errors.append(f"max_supply must be positive, got {self.max_supply}")
        if self.lock_period < 0:
            errors.append(f"lock_period must be >= 0, got {self.lock_period}")
        if not (1 <= self.threshold_percent <= 99):
            errors.append(
                f"threshold_percent must be in [1, 99], got {self.threshold_percent}"
            )
        if not self.currencies:
            errors.append("currencies must not be empty")
        if len(set(self.currencies)) != len(self.currencies):
            errors.append(f"currencies contain duplicates: {list(self.currencies)}")
        if any(not c or c != c.strip() for c in self.currencies):
            errors.append("currency codes must be non-blank and unpadded")
        if not self.treasury_account.strip():
            errors.append("treasury_account must not be blank")
        return errors

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["currencies"] = list(self.currencies)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerConfig:
        """Build from a plain mapping. Unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown ledger parameters: {', '.join(unknown)}")
        values = dict(data)
        if "currencies" in values:
            values["currencies"] = tuple(values["currencies"])
        config = cls(**values)
        _fail_closed(config)
        return config

    @classmethod
    def from_file(cls, path: Path) -> LedgerConfig:
        """Load parameters from a JSON file."""
        with path.open("r", encoding="utf-8") as handle:
            return cls.from_dict(json.load(handle))

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        base: Optional[LedgerConfig] = None,
    ) -> LedgerConfig:
        """Overlay REVGATE_* environment variables on ``base``.

        If ``env_file`` is given it is loaded first with python-dotenv;
        variables already present in the process environment win.
        """
        if env_file is not None:
            load_dotenv(env_file)
        config = base or cls()

        overrides: dict[str, Any] = {}
        for name in ("max_supply", "lock_period", "threshold_percent"):
            raw = os.getenv(_ENV_PREFIX + name.upper())
            if raw is not None:
                try:
                    overrides[name] = int(raw)
                except ValueError:
                    raise ValueError(
                        f"{_ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}"
                    ) from None
        currencies = os.getenv(_ENV_PREFIX + "CURRENCIES")
        if currencies is not None:
            overrides["currencies"] = tuple(
                c.strip() for c in currencies.split(",") if c.strip()
            )
        treasury = os.getenv(_ENV_PREFIX + "TREASURY_ACCOUNT")
        if treasury is not None:
            overrides["treasury_account"] = treasury
        audit_release = os.getenv(_ENV_PREFIX + "AUDIT_RELEASE")
        if audit_release is not None:
            overrides["audit_release"] = audit_release.strip().lower() in ("1", "true", "yes")

        config = replace(config, **overrides)
        _fail_closed(config)
        return config


def _fail_closed(config: LedgerConfig) -> None:
    errors = config.validate()
    if errors:
        raise ValueError("Invalid ledger parameters: " + "; ".join(errors))
