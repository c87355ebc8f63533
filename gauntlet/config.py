import copy
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigurationError
from .models import Category

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "default_config.yaml")

# Campaigns whose payloads come straight from the config file
PAYLOAD_CATEGORIES = (
    Category.SQLI,
    Category.XSS,
    Category.PATH_TRAVERSAL,
    Category.HEADER_INJECTION,
    Category.JWT_BYPASS,
)


@dataclass
class ServerConfig:
    base_url: str = "http://localhost:3000"
    timeout_ms: int = 10000
    snippet_limit: int = 4096


@dataclass
class EndpointConfig:
    root: str = "/"
    health: str = "/health"
    register: str = "/api/auth/register"
    login: str = "/api/auth/login"
    protected: str = "/api/tasks"
    protected_item: str = "/api/tasks/1"


@dataclass
class RateLimitConfig:
    public_limit: int = 100
    auth_limit: int = 500
    margin: int = 20
    tolerance: int = 10
    auth_cap: int = 200
    cooldown_ms: int = 2000


@dataclass
class StressConfig:
    burst_size: int = 50
    iterations: int = 100
    pacing_every: int = 10
    pacing_ms: int = 10
    packet_loss_samples: int = 100
    packet_loss_timeout_ms: int = 5000
    max_in_flight: int = 64
    settle_ms: int = 1000
    response_time_samples: int = 10
    response_time_delay_ms: int = 100


@dataclass
class IdentityConfig:
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = "TestPassword123!"


@dataclass
class FuzzTarget:
    endpoint: str
    field: Optional[str] = None
    method: str = "POST"
    auth: bool = False


@dataclass
class BruteForceConfig:
    identity: str = "admin@example.com"
    identity_field: str = "identifier"
    delay_ms: int = 100
    passwords: List[str] = field(default_factory=list)


@dataclass
class SecurityConfig:
    excerpt_length: int = 50
    replay_count: int = 3
    base_body: Dict[str, Any] = field(default_factory=dict)
    targets: Dict[Category, List[FuzzTarget]] = field(default_factory=dict)
    payloads: Dict[Category, List[Any]] = field(default_factory=dict)
    brute_force: BruteForceConfig = field(default_factory=BruteForceConfig)


@dataclass
class HarnessConfig:
    """Pre-resolved settings consumed by every harness component."""
    server: ServerConfig = field(default_factory=ServerConfig)
    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    stress: StressConfig = field(default_factory=StressConfig)
    test_user: IdentityConfig = field(default_factory=IdentityConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarnessConfig":
        sec = data.get("security", {}) or {}
        try:
            security = SecurityConfig(
                excerpt_length=sec.get("excerpt_length", 50),
                replay_count=sec.get("replay_count", 3),
                base_body=dict(sec.get("base_body") or {}),
                targets={
                    Category(name): [FuzzTarget(**t) for t in (items or [])]
                    for name, items in (sec.get("targets") or {}).items()
                },
                payloads={
                    Category(name): list(items or [])
                    for name, items in (sec.get("payloads") or {}).items()
                },
                brute_force=BruteForceConfig(**(sec.get("brute_force") or {})),
            )
            return cls(
                server=ServerConfig(**(data.get("server") or {})),
                endpoints=EndpointConfig(**(data.get("endpoints") or {})),
                rate_limit=RateLimitConfig(**(data.get("rate_limit") or {})),
                stress=StressConfig(**(data.get("stress") or {})),
                test_user=IdentityConfig(**(data.get("test_user") or {})),
                security=security,
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed configuration: {e}") from e

    def validate(self) -> "HarnessConfig":
        errors = []
        if not self.server.base_url or not self.server.base_url.startswith(("http://", "https://")):
            errors.append("base_url must be an http(s) URL")
        if self.server.timeout_ms < 1000:
            errors.append("timeout_ms must be at least 1000")
        if self.server.snippet_limit < 1:
            errors.append("snippet_limit must be positive")
        if self.rate_limit.public_limit < 1 or self.rate_limit.auth_limit < 1:
            errors.append("rate limits must be at least 1")
        if self.rate_limit.margin < 20:
            errors.append("rate limit margin must be at least 20")
        if not 0 <= self.rate_limit.tolerance < self.rate_limit.margin:
            errors.append("rate limit tolerance must be in [0, margin)")
        if self.stress.burst_size < 1:
            errors.append("burst_size must be at least 1")
        if self.stress.iterations < 1:
            errors.append("iterations must be at least 1")
        if self.stress.pacing_every < 1:
            errors.append("pacing_every must be at least 1")
        if self.stress.packet_loss_samples < 1:
            errors.append("packet_loss_samples must be at least 1")
        if self.stress.max_in_flight < 1:
            errors.append("max_in_flight must be at least 1")
        for category in PAYLOAD_CATEGORIES:
            payloads = self.security.payloads.get(category)
            if not payloads:
                errors.append(f"payload list for {category.value} is empty")
                continue
            malformed = [i for i, p in enumerate(payloads) if not _payload_shape_ok(category, p)]
            if malformed:
                expected = "header-name -> string mappings" if category is Category.HEADER_INJECTION else "strings"
                errors.append(f"payloads for {category.value} must be {expected} (bad entries: {malformed})")
        if not self.security.brute_force.passwords:
            errors.append("brute force password list is empty")
        elif not all(isinstance(p, str) for p in self.security.brute_force.passwords):
            errors.append("brute force passwords must be strings")

        if errors:
            raise ConfigurationError("Invalid configuration: " + "; ".join(errors))
        return self

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        password = self.test_user.password
        return {
            "server": vars(self.server),
            "endpoints": vars(self.endpoints),
            "rate_limit": vars(self.rate_limit),
            "stress": vars(self.stress),
            "test_user": {
                "username": self.test_user.username,
                "email": self.test_user.email,
                "password": "*" * len(password) if mask_secrets else password,
            },
            "security": {
                "payload_counts": {c.value: len(p) for c, p in self.security.payloads.items()},
                "brute_force_attempts": len(self.security.brute_force.passwords),
                "replay_count": self.security.replay_count,
            },
        }


def _payload_shape_ok(category: Category, payload: Any) -> bool:
    if category is Category.HEADER_INJECTION:
        return (isinstance(payload, dict) and bool(payload)
                and all(isinstance(k, str) and isinstance(v, str) for k, v in payload.items()))
    return isinstance(payload, str)


def _deep_merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load configuration file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> HarnessConfig:
    """
    Packaged defaults, then the user's YAML file, then explicit overrides
    (e.g. {"server": {"base_url": ...}} from the CLI). Always validated.
    """
    data = _read_yaml(DEFAULT_CONFIG_PATH)
    if path:
        data = _deep_merge(data, _read_yaml(path))
    if overrides:
        data = _deep_merge(data, overrides)
    return HarnessConfig.from_dict(data).validate()
