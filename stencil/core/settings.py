from __future__ import annotations

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STENCIL_", case_sensitive=False)

    output_dir: Path = Path(".")
    no_input: bool = False
    run_hooks: bool = True
    clone_depth: int = 1
    portable_names: bool = os.name == "nt"
