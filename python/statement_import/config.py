"""
Import Settings Module

Loads statement import settings from config/statement_import.yaml with
environment variable overrides for the extraction call.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"
CONFIG_FILENAME = "statement_import.yaml"


@dataclass
class ImportSettings:
    """Tunable values for parsers and the extraction call."""

    csv_delimiter: str = ";"
    csv_min_columns: int = 9
    placeholder_values: tuple[str, ...] = ("-",)
    single_installment_markers: tuple[str, ...] = ("única", "unica")
    extraction_model: str = "claude-sonnet-4-5-20250929"
    extraction_timeout: float = 120.0
    extraction_max_tokens: int = 16000
    source_file: Path | None = field(default=None, compare=False)

    @classmethod
    def load(cls, config_dir: Path | str | None = None) -> "ImportSettings":
        """Load settings from the YAML file, then apply environment overrides.

        Args:
            config_dir: Directory holding statement_import.yaml

        Returns:
            ImportSettings instance
        """
        config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        config_file = config_dir / CONFIG_FILENAME

        data: dict = {}
        if config_file.exists():
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
        else:
            logger.warning(f"Import settings file not found: {config_file}, using defaults")

        csv_cfg = data.get("csv", {})
        norm_cfg = data.get("normalization", {})
        extraction_cfg = data.get("extraction", {})
        defaults = cls()

        settings = cls(
            csv_delimiter=csv_cfg.get("delimiter", defaults.csv_delimiter),
            csv_min_columns=int(csv_cfg.get("min_columns", defaults.csv_min_columns)),
            placeholder_values=tuple(
                norm_cfg.get("placeholder_values", defaults.placeholder_values)
            ),
            single_installment_markers=tuple(
                m.lower() for m in norm_cfg.get(
                    "single_installment_markers", defaults.single_installment_markers
                )
            ),
            extraction_model=extraction_cfg.get("model", defaults.extraction_model),
            extraction_timeout=float(
                extraction_cfg.get("timeout_seconds", defaults.extraction_timeout)
            ),
            extraction_max_tokens=int(
                extraction_cfg.get("max_tokens", defaults.extraction_max_tokens)
            ),
            source_file=config_file if config_file.exists() else None,
        )
        settings._apply_env_overrides()
        return settings

    def _apply_env_overrides(self) -> None:
        """Override extraction settings from the environment."""
        if os.getenv("STATEMENT_IMPORT_MODEL"):
            self.extraction_model = os.environ["STATEMENT_IMPORT_MODEL"]
        if os.getenv("STATEMENT_IMPORT_TIMEOUT"):
            self.extraction_timeout = float(os.environ["STATEMENT_IMPORT_TIMEOUT"])
        if os.getenv("STATEMENT_IMPORT_MAX_TOKENS"):
            self.extraction_max_tokens = int(os.environ["STATEMENT_IMPORT_MAX_TOKENS"])
