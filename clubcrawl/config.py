"""Crawl configuration.

CrawlConfig collects every knob of a run. It can be loaded from a JSON
file, where both snake_case and camelCase keys are accepted, so a file
like ``{"listingUrl": ..., "progressPath": ..., "outputPath": ...}``
works as is. Command line flags override file values.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from clubcrawl.discovery import DEFAULT_DETAIL_URL_TEMPLATE

DEFAULT_LISTING_URL = (
    "https://www.futgal.es/pnfg/NPcd/NFG_Clubes?cod_primaria=1000118"
    "&NPcd_Page=1&nueva_ventana=&Buscar=1&orden=12&cod_club=&nclub="
    "&Sch_CodCategoria=&cod_provincia="
    "&localidad_txt=--+Seleccione+Provincia+--&localidad=0"
    "&code_delegacion=&cod_delegacion=&cod_postal=&NPcd_PageLines=2000"
)


class ConfigError(Exception):
    """Raised when a configuration file cannot be loaded."""


class CrawlConfig(BaseModel):
    """Settings for one crawl run."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    listing_url: str = DEFAULT_LISTING_URL
    progress_path: Path = Path("progress.json")
    output_path: Path = Path("clubs.jsonl")
    db_path: Path | None = Field(
        default=None, description="Use the SQLite store at this path"
    )
    detail_url_template: str = Field(
        default=DEFAULT_DETAIL_URL_TEMPLATE,
        description="Club page URL with {origin} and {code} placeholders",
    )
    login_marker: str = "login"
    redirect_statuses: list[int] = Field(default_factory=lambda: [301, 302])
    fetch_timeout: float = Field(default=30.0, gt=0)
    num_workers: int = Field(default=1, ge=1)
    transport: Literal["playwright", "http"] = "playwright"
    headless: bool = True
    user_agent: str | None = None

    @classmethod
    def from_file(cls, path: Path) -> CrawlConfig:
        """Load a configuration from a JSON file.

        Raises:
            ConfigError: If the file is missing, not JSON, or invalid.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {path}:\n{e}") from e

    def with_overrides(self, **overrides: Any) -> CrawlConfig:
        """Return a copy with every non-None override applied.

        Raises:
            ConfigError: If an override is not a valid value.
        """
        values = {k: v for k, v in overrides.items() if v is not None}
        try:
            return self.model_validate({**self.model_dump(), **values})
        except ValidationError as e:
            raise ConfigError(f"Invalid setting:\n{e}") from e
