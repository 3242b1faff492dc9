from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    provider: str = "dummy"
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


class DefaultRule(BaseModel):
    auth_required: bool = True
    required_roles: list[str] = Field(default_factory=list)


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    auth_required: bool | None = None
    required_roles: list[str] = Field(default_factory=list)

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    required_roles: frozenset[str]


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/employees/{id}" -> r"^/employees/[^/]+$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


class SecurityConfig:
    """
    Runtime helper around validated config + route matching.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        # Exact paths win over templates.
        self._exact_rules: dict[str, list[RouteRule]] = {}
        for rule in self.model.routes:
            self._exact_rules.setdefault(rule.path, []).append(rule)
        self._compiled_rules = [(_path_template_to_regex(rule.path), rule) for rule in self.model.routes]

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        """
        Find the best matching rule for (path, method), then apply defaults.
        """

        method = method.upper()
        default = self.model.default

        for candidate in self._exact_rules.get(path, []):
            if method in candidate.normalized_methods():
                return _effective(candidate, default)

        for regex, candidate in self._compiled_rules:
            if method in candidate.normalized_methods() and regex.match(path):
                return _effective(candidate, default)

        return EffectiveRule(
            auth_required=default.auth_required,
            required_roles=frozenset(default.required_roles),
        )


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    # A rule that names roles implies auth even if the default is public.
    inferred_auth_required = default.auth_required or bool(rule.required_roles)

    return EffectiveRule(
        auth_required=inferred_auth_required if rule.auth_required is None else rule.auth_required,
        required_roles=frozenset(rule.required_roles or default.required_roles),
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)
