from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from yaaai.errors import ConfigError


class LLMConfig(BaseModel):
    provider: str = "openai"
    model: str
    temperature: float = 0.7
    base_url: Optional[str] = None
    api_key_env: Optional[str] = "OPENAI_API_KEY"
    timeout: Optional[float] = None
    max_retries: int = 2


class TaskConfig(BaseModel):
    prompt_path: Optional[str] = None
    max_tries: int = Field(default=3, ge=1)
    temperature: float = 0.1
    depends_on: List[str] = Field(default_factory=list)
    enabled: bool = True

    def read_prompt(self, base_dir: Path) -> Optional[str]:
        if not self.prompt_path:
            return None
        path = base_dir / self.prompt_path
        if not path.exists():
            raise ConfigError(f"Missing prompt file: {path}")
        return path.read_text(encoding="utf-8").strip()


class WorkflowConfig(BaseModel):
    parallel: bool = True
    skip_dependents_on_failure: bool = False


class ChatConfig(BaseModel):
    system_prompt: str = "You are a helpful assistant."
    temperature: float = 0.9


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    llm: LLMConfig
    tasks: Dict[str, TaskConfig]
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    root_dir: Path = Path(".")


def load_config(env: str = "base", config_dir: Path | str = Path("configs")) -> AppConfig:
    config_dir = Path(config_dir)
    base_path = config_dir / "base.yaml"
    if not base_path.exists():
        raise ConfigError(f"Missing config file: {base_path}")
    base = _read_yaml(base_path)
    if env != "base":
        override_path = config_dir / f"{env}.yaml"
        if override_path.exists():
            base = _merge_dicts(base, _read_yaml(override_path))
    base.setdefault("root_dir", str(config_dir.parent))
    try:
        return AppConfig(**base)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_dir}: {exc}") from exc


def _read_yaml(path: Path) -> Dict[str, Any]:
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def _merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge_dicts(base[key], value)
        else:
            merged[key] = value
    return merged
