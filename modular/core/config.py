"""
Engine configuration.

Production mode skips module validation and the unmet-dependency check, and
hands modules an unrestricted dependency snapshot. It is an explicit value
passed to the registry and enhancer rather than an ambient global.

Environment Variables (read by EngineConfig.from_env only):
    MODULAR_ENV: "production" enables production mode - default: development
    MODULAR_RESTRICT_SNAPSHOTS: true/false override for snapshot restriction
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True)
class EngineConfig:
    """
    Fields:
        production: Skip validation and unmet-dependency checks
        restrict_snapshots: Override for snapshot restriction (None = not production)
    """
    production: bool = False
    restrict_snapshots: Optional[bool] = None

    @property
    def validate_modules(self) -> bool:
        return not self.production

    @property
    def check_external_dependencies(self) -> bool:
        return not self.production

    @property
    def snapshots_restricted(self) -> bool:
        if self.restrict_snapshots is None:
            return not self.production
        return self.restrict_snapshots

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        env = os.environ if environ is None else environ
        production = env.get("MODULAR_ENV", "development").strip().lower() == "production"

        restrict: Optional[bool] = None
        raw = env.get("MODULAR_RESTRICT_SNAPSHOTS", "").strip().lower()
        if raw in _TRUTHY:
            restrict = True
        elif raw in _FALSY:
            restrict = False

        return EngineConfig(production=production, restrict_snapshots=restrict)


DEVELOPMENT = EngineConfig()
PRODUCTION = EngineConfig(production=True)
