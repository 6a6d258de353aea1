"""
Application settings and configuration management.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Optional
import yaml
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class AlertThresholds:
    """Percent deviation vs budget that escalates an alert."""
    warning_threshold: float = 5.0
    critical_threshold: float = 15.0

    def __post_init__(self):
        if self.warning_threshold < 0 or self.critical_threshold < 0:
            raise ValueError("Alert thresholds must be non-negative")
        if self.warning_threshold > self.critical_threshold:
            raise ValueError(
                f"warning_threshold ({self.warning_threshold}) cannot exceed "
                f"critical_threshold ({self.critical_threshold})"
            )


class Settings:
    """Application settings and configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.project_root = Path(__file__).parent.parent.parent
        self.config_dir = Path(config_dir) if config_dir else self.project_root / "config"
        self.data_dir = self.project_root / "data"
        self.output_dir = self.data_dir / "output"
        self.logger = logging.getLogger(__name__)

        self.thresholds = {}

        self._load_config()
        self._apply_env_overrides()
        self._validate_config()

    def _load_config(self):
        """Load configuration from YAML files with error handling."""
        self.thresholds = self._load_yaml_config(
            self.config_dir / "thresholds.yaml",
            self._default_thresholds,
            "thresholds"
        )

    def _load_yaml_config(self, file_path: Path, default_func, config_name: str) -> Dict[str, Any]:
        """Load a YAML config file with fallback to defaults."""
        try:
            if file_path.exists():
                with open(file_path, 'r', encoding='utf-8') as f:
                    config = yaml.safe_load(f)
                    if config is None:
                        self.logger.warning(f"Empty {config_name} file, using defaults")
                        return default_func()
                    self.logger.info(f"Loaded {config_name} from {file_path}")
                    return self._merge(default_func(), config)
            else:
                self.logger.warning(f"{config_name} file not found at {file_path}, using defaults")
                return default_func()
        except yaml.YAMLError as e:
            self.logger.error(f"Error parsing {config_name} YAML: {e}, using defaults")
            return default_func()
        except OSError as e:
            self.logger.error(f"Error loading {config_name}: {e}, using defaults")
            return default_func()

    def _merge(self, defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay loaded sections on the defaults, one level deep."""
        merged = dict(defaults)
        for key, value in loaded.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
        return merged

    def _apply_env_overrides(self):
        """Environment variables (and .env) win over the YAML file."""
        alert = self.thresholds.setdefault("alert_thresholds", {})
        if os.getenv("WARNING_THRESHOLD"):
            alert["warning_threshold"] = float(os.getenv("WARNING_THRESHOLD"))
        if os.getenv("CRITICAL_THRESHOLD"):
            alert["critical_threshold"] = float(os.getenv("CRITICAL_THRESHOLD"))
        if os.getenv("TREND_BAND"):
            self.thresholds["trend_band"] = float(os.getenv("TREND_BAND"))

        ledger = self.thresholds.setdefault("ledger", {})
        if os.getenv("LEDGER_PAGE_SIZE"):
            ledger["page_size"] = int(os.getenv("LEDGER_PAGE_SIZE"))
        if os.getenv("LEDGER_MAX_ROWS"):
            ledger["max_rows"] = int(os.getenv("LEDGER_MAX_ROWS"))

    def _validate_config(self):
        """Validate loaded configuration."""
        try:
            self._validate_thresholds()
            self._validate_ledger_paging()
            self.logger.info("Configuration validation completed successfully")
        except (ValueError, TypeError) as e:
            self.logger.error(f"Configuration validation failed: {e}")
            raise

    def _validate_thresholds(self):
        """Validate thresholds configuration."""
        alert = self.thresholds.get("alert_thresholds")
        if not isinstance(alert, dict):
            raise ValueError("Missing required section: alert_thresholds")

        for key in ['warning_threshold', 'critical_threshold']:
            if key not in alert:
                raise ValueError(f"Missing required threshold key: {key}")
            if not isinstance(alert[key], (int, float)):
                raise ValueError(f"Threshold {key} must be numeric")

        # Raises on negative or inverted thresholds
        AlertThresholds(float(alert['warning_threshold']), float(alert['critical_threshold']))

        if not isinstance(self.thresholds.get("trend_band"), (int, float)) or self.thresholds["trend_band"] < 0:
            raise ValueError("trend_band must be a non-negative number")

    def _validate_ledger_paging(self):
        """Validate bulk paging limits."""
        ledger = self.thresholds.get("ledger", {})
        for key in ['page_size', 'max_rows']:
            value = ledger.get(key)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"ledger.{key} must be a positive integer")

    def _default_thresholds(self) -> Dict[str, Any]:
        """Default alert thresholds and classification keywords."""
        return {
            "alert_thresholds": {
                "warning_threshold": 5.0,
                "critical_threshold": 15.0,
            },
            "trend_band": 3.0,
            "classification": {
                "expense_keywords": ["despesa", "custo"],
            },
            "summary_keywords": {
                "revenue": ["receita"],
                "margin": ["margem", "lucro"],
                "expenses": ["despesa"],
            },
            "ledger": {
                "default_department": "GERAL",
                "page_size": 50000,
                "max_rows": 500000,
            },
            "insights": {
                "top_n": 5,
                "max_context_chars": 15000,
            },
        }

    @property
    def default_output_file(self) -> str:
        """Default output file path."""
        return str(self.output_dir / "controller_alerts.xlsx")

    @property
    def log_level(self) -> str:
        """Logging level."""
        return os.getenv("LOG_LEVEL", "INFO")

    def get_alert_thresholds(self) -> AlertThresholds:
        """Get the configured severity thresholds."""
        alert = self.thresholds["alert_thresholds"]
        return AlertThresholds(
            warning_threshold=float(alert["warning_threshold"]),
            critical_threshold=float(alert["critical_threshold"]),
        )

    def get_trend_band(self) -> float:
        """Get the +/- percent band inside which a trend is stable."""
        return float(self.thresholds.get("trend_band", 3.0))

    def get_expense_keywords(self) -> List[str]:
        """Get name keywords that mark an untyped account as expense-like."""
        return [k.lower() for k in self.thresholds.get("classification", {}).get("expense_keywords", [])]

    def get_summary_keywords(self, category: str) -> List[str]:
        """Get name keywords for a headline summary category."""
        return [k.lower() for k in self.thresholds.get("summary_keywords", {}).get(category, [])]

    def get_default_department(self) -> str:
        """Get the department assigned to ledger rows without one."""
        return self.thresholds.get("ledger", {}).get("default_department", "GERAL")

    def get_page_size(self) -> int:
        """Get the bulk aggregation page size."""
        return int(self.thresholds["ledger"]["page_size"])

    def get_max_rows(self) -> int:
        """Get the hard bound on rows scanned by bulk aggregation."""
        return int(self.thresholds["ledger"]["max_rows"])

    def get_insight_top_n(self) -> int:
        """Get how many worst alerts per tier feed the insight context."""
        return int(self.thresholds.get("insights", {}).get("top_n", 5))

    def get_max_context_chars(self) -> int:
        """Get the truncation length of the serialized insight payload."""
        return int(self.thresholds.get("insights", {}).get("max_context_chars", 15000))
