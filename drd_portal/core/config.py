from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Dict, Any, Optional
import json


def parse_prefix_map(v: Any) -> Dict[str, str]:
    """Parse prefix map from environment variable format: patent:PAT,copyright:CPY"""
    if not v:
        return {}
    if isinstance(v, str) and v.strip().startswith('{'):
        try:
            v = json.loads(v)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON prefix map: {e}")
    if isinstance(v, dict):
        return {str(k).strip(): str(prefix).strip().upper() for k, prefix in v.items()}

    prefixes = {}
    for item in str(v).split(','):
        if not item.strip():
            continue
        key, sep, prefix = item.partition(':')
        if not sep or not key.strip() or not prefix.strip():
            raise ValueError(f"Invalid prefix entry '{item.strip()}' (expected key:PREFIX)")
        prefixes[key.strip()] = prefix.strip().upper()
    return prefixes


def parse_default_policies(v: Any) -> List[Dict[str, Any]]:
    """
    Parse default incentive policies.

    Accepts a JSON list or the compact form
    category/sub_type:amount:points,category/sub_type:amount:points
    (compact entries always use the equal split).
    """
    if isinstance(v, list):
        return v
    if not v:
        return []
    if isinstance(v, str) and v.strip().startswith('['):
        try:
            return json.loads(v)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON policy list: {e}")

    policies = []
    for item in str(v).split(','):
        if not item.strip():
            continue
        parts = [p.strip() for p in item.split(':')]
        if len(parts) != 3 or '/' not in parts[0]:
            raise ValueError(f"Invalid policy entry '{item.strip()}' (expected category/sub_type:amount:points)")
        category, sub_type = parts[0].split('/', 1)
        try:
            points = int(parts[2])
        except ValueError:
            raise ValueError(f"Invalid points '{parts[2]}' in policy entry '{item.strip()}'")
        policies.append({
            "category": category,
            "sub_type": sub_type,
            "base_amount": parts[1],
            "base_points": points,
            "split_policy": "equal",
        })
    return policies


@dataclass(frozen=True)
class ApplicationNumberConfig:
    """Prefixes and sequence widths for application numbers"""
    ipr_prefixes: Dict[str, str]
    research_prefixes: Dict[str, str]
    grant_prefix: str = "GRT"
    ipr_fallback_prefix: str = "IPR"
    research_fallback_prefix: str = "RC"
    sequence_width: int = 4
    grant_sequence_width: int = 5


@dataclass(frozen=True)
class WorkflowConfig:
    """Workflow switches passed to the state machine at construction time"""
    mentor_gate_enabled: bool = True
    numbering: ApplicationNumberConfig = field(
        default_factory=lambda: ApplicationNumberConfig(
            ipr_prefixes=dict(DEFAULT_IPR_PREFIXES),
            research_prefixes=dict(DEFAULT_RESEARCH_PREFIXES),
        )
    )


@dataclass(frozen=True)
class PolicyDefault:
    category: str
    sub_type: str
    base_amount: Decimal
    base_points: int
    split_policy: str = "equal"
    role_percentages: List[Dict[str, Any]] = field(default_factory=list)
    international_bonus: Optional[Decimal] = None
    consortium_bonus: Optional[Decimal] = None


@dataclass(frozen=True)
class PolicyDefaults:
    """Environment supplied seed policies for a fresh installation"""
    policies: List[PolicyDefault] = field(default_factory=list)


DEFAULT_IPR_PREFIXES = {
    "patent": "PAT",
    "copyright": "CPY",
    "trademark": "TRM",
    "design": "DES",
}

DEFAULT_RESEARCH_PREFIXES = {
    "research_paper": "RP",
    "book": "BK",
    "book_chapter": "BC",
    "conference_paper": "CP",
}


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "DRD Portal"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_VERSION: str = "v1"
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./drd_portal.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # ==========================================
    # Workflow
    # ==========================================
    MENTOR_GATE_ENABLED: bool = True

    # Application numbers: PAT-2025-0001, GRT-2025-00001
    IPR_NUMBER_PREFIXES: Any = DEFAULT_IPR_PREFIXES
    RESEARCH_NUMBER_PREFIXES: Any = DEFAULT_RESEARCH_PREFIXES
    GRANT_NUMBER_PREFIX: str = "GRT"
    APPLICATION_SEQUENCE_WIDTH: int = 4
    GRANT_SEQUENCE_WIDTH: int = 5

    # ==========================================
    # Incentive policies
    # ==========================================
    DEFAULT_POLICIES: Any = []

    @field_validator("IPR_NUMBER_PREFIXES", "RESEARCH_NUMBER_PREFIXES", mode="before")
    @classmethod
    def _parse_prefixes(cls, v: Any) -> Dict[str, str]:
        return parse_prefix_map(v)

    @field_validator("DEFAULT_POLICIES", mode="before")
    @classmethod
    def _parse_policies(cls, v: Any) -> List[Dict[str, Any]]:
        return parse_default_policies(v)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def application_number_config(self) -> ApplicationNumberConfig:
        return ApplicationNumberConfig(
            ipr_prefixes={**DEFAULT_IPR_PREFIXES, **self.IPR_NUMBER_PREFIXES},
            research_prefixes={**DEFAULT_RESEARCH_PREFIXES, **self.RESEARCH_NUMBER_PREFIXES},
            grant_prefix=self.GRANT_NUMBER_PREFIX,
            sequence_width=self.APPLICATION_SEQUENCE_WIDTH,
            grant_sequence_width=self.GRANT_SEQUENCE_WIDTH,
        )

    def workflow_config(self) -> WorkflowConfig:
        return WorkflowConfig(
            mentor_gate_enabled=self.MENTOR_GATE_ENABLED,
            numbering=self.application_number_config(),
        )

    def policy_defaults(self) -> PolicyDefaults:
        policies = []
        for raw in self.DEFAULT_POLICIES:
            policies.append(PolicyDefault(
                category=raw["category"],
                sub_type=raw.get("sub_type", "default"),
                base_amount=Decimal(str(raw["base_amount"])),
                base_points=int(raw.get("base_points", 0)),
                split_policy=raw.get("split_policy", "equal"),
                role_percentages=raw.get("role_percentages", []),
                international_bonus=Decimal(str(raw["international_bonus"])) if raw.get("international_bonus") is not None else None,
                consortium_bonus=Decimal(str(raw["consortium_bonus"])) if raw.get("consortium_bonus") is not None else None,
            ))
        return PolicyDefaults(policies=policies)


settings = Settings()
