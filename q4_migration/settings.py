"""Runtime settings assembled from the environment and command line flags."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError
from .matching import MatchThresholds
from .state import DEFAULT_MAX_CONCURRENT_SITES

USERNAME_ENV = "CMS_USER"
PASSWORD_ENV = "CMS_PASSWORD"
DATA_DIR_ENV = "Q4_DATA_DIR"
MAX_CONCURRENT_ENV = "Q4_MAX_CONCURRENT_SITES"
FUZZY_HIGH_ENV = "Q4_FUZZY_HIGH"
FUZZY_LOW_ENV = "Q4_FUZZY_LOW"
ORDERED_MIN_ENV = "Q4_ORDERED_MIN_TOKENS"

DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


@dataclass(frozen=True)
class Settings:
    credentials: Credentials
    data_dir: Path = Path("data")
    headless: bool = True
    max_concurrent_sites: int = DEFAULT_MAX_CONCURRENT_SITES
    timeout: int = DEFAULT_TIMEOUT
    thresholds: MatchThresholds = field(default_factory=MatchThresholds)


def _pick(flag_value, env: Mapping[str, str], name: str, cast, default):
    if flag_value is not None:
        return flag_value
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} has an invalid value: {raw!r}") from exc


def load_credentials(env: Mapping[str, str]) -> Credentials:
    username = env.get(USERNAME_ENV)
    password = env.get(PASSWORD_ENV)
    missing = [name for name, value in ((USERNAME_ENV, username), (PASSWORD_ENV, password)) if not value]
    if missing:
        raise ConfigError(f"Missing credentials: set {' and '.join(missing)}")
    return Credentials(username, password)  # type: ignore[arg-type]


def load_settings(
    args: Optional[argparse.Namespace] = None,
    env: Optional[Mapping[str, str]] = None,
    *,
    use_dotenv: bool = True,
) -> Settings:
    """Build :class:`Settings`; command line values win over the environment."""

    if env is None:
        if use_dotenv:
            load_dotenv()
        env = os.environ

    flags = args if args is not None else argparse.Namespace()
    defaults = MatchThresholds()
    try:
        thresholds = MatchThresholds(
            fuzzy_high=_pick(getattr(flags, "fuzzy_high", None), env, FUZZY_HIGH_ENV, float, defaults.fuzzy_high),
            fuzzy_low=_pick(getattr(flags, "fuzzy_low", None), env, FUZZY_LOW_ENV, float, defaults.fuzzy_low),
            ordered_min_tokens=_pick(
                getattr(flags, "ordered_min_tokens", None), env, ORDERED_MIN_ENV, int, defaults.ordered_min_tokens
            ),
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid matching thresholds: {exc}") from exc
    max_concurrent = _pick(
        getattr(flags, "max_concurrent", None), env, MAX_CONCURRENT_ENV, int, DEFAULT_MAX_CONCURRENT_SITES
    )
    if max_concurrent < 1:
        raise ConfigError("Maximum concurrent sites must be at least 1")

    return Settings(
        credentials=load_credentials(env),
        data_dir=Path(_pick(getattr(flags, "data_dir", None), env, DATA_DIR_ENV, str, "data")),
        headless=getattr(flags, "headless", True),
        max_concurrent_sites=max_concurrent,
        timeout=getattr(flags, "timeout", None) or DEFAULT_TIMEOUT,
        thresholds=thresholds,
    )
