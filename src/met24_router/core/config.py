from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

from met24_router.models import Provider


# --- router.yml location -----------------------------------------------------

# This file lives at: src/met24_router/core/config.py
# router.yml ships next to the package: src/met24_router/router.yml
PACKAGE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CFG_PATH = PACKAGE_DIR / "router.yml"


# --- Settings schema -----------------------------------------------------------

class ProviderSettings(BaseModel):
    base_url: Optional[str] = None
    api_key_env: Optional[str] = None
    enabled: bool = True


class RoutingSettings(BaseModel):
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_fallbacks: int = Field(default=3, ge=0)
    estimated_output_tokens: int = Field(default=500, ge=0)
    temperature: float = 0.7
    max_tokens: int = Field(default=2000, gt=0)


class StoreSettings(BaseModel):
    path: str = "routellm.db"
    owner_id: str = "default"


class RouterSettings(BaseModel):
    # keyed by the closed Provider enum: an unknown name in router.yml fails validation
    providers: Dict[Provider, ProviderSettings] = Field(default_factory=dict)
    routing: RoutingSettings = Field(default_factory=RoutingSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    def provider(self, provider: Provider) -> ProviderSettings:
        return self.providers.get(provider) or ProviderSettings()


# --- Loading -----------------------------------------------------------------

def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data


def load_settings(path: Optional[Path] = None) -> RouterSettings:
    """
    Load router.yml into RouterSettings.

    - `path` wins, then ROUTER_CONFIG env, then the packaged router.yml.
    - ROUTER_DB_PATH overrides store.path (handy for tests / containers).
    """
    cfg_path = Path(path or os.getenv("ROUTER_CONFIG") or DEFAULT_CFG_PATH)
    settings = RouterSettings.model_validate(_read_yaml(cfg_path))

    db_path = os.getenv("ROUTER_DB_PATH")
    if db_path:
        settings.store.path = db_path
    return settings
