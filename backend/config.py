"""Judge settings: stored config merged with environment overrides."""

import os
from typing import Any

from soup_sleuth.llm import Judge, judge_from_config
from soup_sleuth.storage import Storage

_ENV_OVERRIDES = {
    "JUDGE_URL": "provider_url",
    "JUDGE_API_KEY": "api_key",
    "JUDGE_MODEL": "model",
    "JUDGE_FORMAT": "provider_format",
    "JUDGE_TIMEOUT": "timeout",
}


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Environment variables win over the stored judge settings."""
    judge_cfg = dict(config["judge"])
    if not judge_cfg.get("api_key") and os.getenv("OPENAI_API_KEY"):
        judge_cfg["api_key"] = os.environ["OPENAI_API_KEY"]
    for env_name, field in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            judge_cfg[field] = value
    return {**config, "judge": judge_cfg}


def build_judge(storage: Storage) -> Judge:
    return judge_from_config(apply_env_overrides(storage.get_config()))
