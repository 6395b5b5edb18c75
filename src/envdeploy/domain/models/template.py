"""Deploy template domain models.

Field rules (id patterns, non-empty lists, enum values, strict flags) live on
the models, and cross references between providers, environments and presets
are checked once the whole template has been built.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import Field, field_validator, model_validator, StrictBool

from envdeploy.domain.models.base import ValueObject


SUPPORTED_DEPLOY_SCHEMA_VERSION = "2"
ENV_ID_PATTERN = r"^[a-z][a-z0-9-]{1,31}$"
PROVIDER_ID_PATTERN = r"^[a-z][a-z0-9-]{1,63}$"

OUTPUT_TYPE_ALIASES = {"secret-ref": "secret_ref"}

NonEmptyStr = Annotated[str, Field(min_length=1)]


class DriverType(str, Enum):
    """Provisioning driver implementations a provider may point at."""

    OPENTOFU = "opentofu"
    TERRAFORM = "terraform"


class Capability(str, Enum):
    """Functional traits an environment can declare."""

    APP_RUNTIME = "appRuntime"
    POSTGRES = "postgres"
    ENV_CONFIG = "envConfig"
    DNS = "dns"


class OutputType(str, Enum):
    """Value types an environment output may carry."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    SECRET_REF = "secret_ref"


class TemplateModel(ValueObject):
    """Base for template sections; surrounding whitespace in strings is ignored."""

    model_config = {"str_strip_whitespace": True}


def _duplicates(values: list[str]) -> list[str]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for value in values:
        if value in seen and value not in duplicates:
            duplicates.append(value)
        seen.add(value)
    return duplicates


class ProviderDriver(TemplateModel):
    """Pointer to the provisioning sources backing a provider."""

    type: DriverType
    entry: NonEmptyStr


class Provider(TemplateModel):
    """A named provisioning backend implementation."""

    id: str = Field(pattern=PROVIDER_ID_PATTERN)
    driver: ProviderDriver


class OutputSpec(TemplateModel):
    """An output an environment expects its provider to produce."""

    key: NonEmptyStr
    type: OutputType
    sensitive: StrictBool = False
    rotatable: StrictBool = False
    required: StrictBool = True
    description: str | None = None
    default: Any = None

    @field_validator("type", mode="before")
    @classmethod
    def resolve_type_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            return OUTPUT_TYPE_ALIASES.get(v, v)
        return v

    @property
    def has_default(self) -> bool:
        """True when the template declared a default, even a null one."""
        return "default" in self.model_fields_set


class EnvironmentSpec(TemplateModel):
    """A deployable environment bound to one provider."""

    id: str = Field(pattern=ENV_ID_PATTERN)
    label: NonEmptyStr
    provider: NonEmptyStr
    capabilities: list[Capability] = Field(min_length=1)
    constraints: dict[str, Any]
    outputs: list[OutputSpec]

    @field_validator("outputs")
    @classmethod
    def validate_unique_output_keys(cls, v: list[OutputSpec]) -> list[OutputSpec]:
        duplicates = _duplicates([output.key for output in v])
        if duplicates:
            raise ValueError(f"contains duplicate output key '{duplicates[0]}'.")
        return v


class PresetSpec(TemplateModel):
    """A named bundle of constraint overrides for one or more environments."""

    id: NonEmptyStr
    label: NonEmptyStr
    description: NonEmptyStr
    environments: list[NonEmptyStr] = Field(min_length=1)
    provider: str | None = None
    constraints: dict[str, Any]

    @field_validator("provider")
    @classmethod
    def blank_provider_means_any(cls, v: str | None) -> str | None:
        return v or None

    def is_compatible_with(self, environment: EnvironmentSpec) -> bool:
        return environment.id in self.environments and (
            self.provider is None or self.provider == environment.provider
        )


class DeployTemplate(TemplateModel):
    """Environment topology for one project type."""

    version: str
    providers: list[Provider] = Field(min_length=1)
    environments: list[EnvironmentSpec] = Field(min_length=1)
    presets: list[PresetSpec] = Field(min_length=1)

    @field_validator("providers")
    @classmethod
    def validate_unique_provider_ids(cls, v: list[Provider]) -> list[Provider]:
        duplicates = _duplicates([provider.id for provider in v])
        if duplicates:
            raise ValueError(f"contains duplicate provider id '{duplicates[0]}'.")
        return v

    @field_validator("environments")
    @classmethod
    def validate_unique_environment_ids(
        cls, v: list[EnvironmentSpec]
    ) -> list[EnvironmentSpec]:
        duplicates = _duplicates([env.id for env in v])
        if duplicates:
            raise ValueError(f"contains duplicate environment id '{duplicates[0]}'.")
        return v

    @field_validator("presets")
    @classmethod
    def validate_unique_preset_ids(cls, v: list[PresetSpec]) -> list[PresetSpec]:
        duplicates = _duplicates([preset.id for preset in v])
        if duplicates:
            raise ValueError(f"contains duplicate preset id '{duplicates[0]}'.")
        return v

    @model_validator(mode="after")
    def validate_references(self) -> DeployTemplate:
        provider_ids = {provider.id for provider in self.providers}
        for env in self.environments:
            if env.provider not in provider_ids:
                raise ValueError(
                    f"environments provider '{env.provider}' is not defined in providers."
                )

        environment_ids = {env.id for env in self.environments}
        for preset in self.presets:
            if preset.provider and preset.provider not in provider_ids:
                raise ValueError(
                    f"preset '{preset.id}' references unknown provider '{preset.provider}'."
                )
            for env_id in preset.environments:
                if env_id not in environment_ids:
                    raise ValueError(
                        f"preset '{preset.id}' references unknown environment '{env_id}'."
                    )

        for env in self.environments:
            if not any(preset.is_compatible_with(env) for preset in self.presets):
                raise ValueError(
                    f"no compatible preset found for environment '{env.id}' "
                    f"and provider '{env.provider}'."
                )
        return self

    def get_provider(self, provider_id: str) -> Provider | None:
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        return None

    def get_environment(self, environment_id: str) -> EnvironmentSpec | None:
        for environment in self.environments:
            if environment.id == environment_id:
                return environment
        return None

    def environments_for_provider(self, provider_id: str) -> list[EnvironmentSpec]:
        return [env for env in self.environments if env.provider == provider_id]

    def compatible_presets(self, environment_id: str) -> list[PresetSpec]:
        """Presets usable for an environment, in declaration order."""
        environment = self.get_environment(environment_id)
        if environment is None:
            return []
        return [preset for preset in self.presets if preset.is_compatible_with(environment)]
