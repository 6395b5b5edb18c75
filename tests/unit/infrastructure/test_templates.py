"""Unit tests for deploy template loading and the output contract check."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from envdeploy.domain.errors import TemplateContractError, TemplateValidationError
from envdeploy.infrastructure.templates.loader import (
    find_deploy_template,
    load_deploy_template,
    load_template_for_type,
)
from envdeploy.infrastructure.templates.output_contract import validate_output_contract


class TestFindDeployTemplate:
    def test_prefers_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "deploy.json").write_text("{}")
        (tmp_path / "deploy.yaml").write_text("{}")
        assert find_deploy_template(tmp_path) == tmp_path / "deploy.yaml"

    def test_json_fallback(self, tmp_path: Path) -> None:
        (tmp_path / "deploy.json").write_text("{}")
        assert find_deploy_template(tmp_path) == tmp_path / "deploy.json"

    def test_missing(self, tmp_path: Path) -> None:
        assert find_deploy_template(tmp_path) is None


class TestLoadDeployTemplate:
    def test_yaml(self, templates_dir: Path) -> None:
        result = load_deploy_template(templates_dir / "webapp" / "deploy.yaml")
        assert result.exists
        assert result.error is None
        assert result.config is not None
        assert [e.id for e in result.config.environments] == ["staging", "prod"]

    def test_json(self, tmp_path: Path, template_data: dict[str, Any]) -> None:
        path = tmp_path / "deploy.json"
        path.write_text(json.dumps(template_data))
        assert load_deploy_template(path).config is not None

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_deploy_template(tmp_path / "deploy.yaml")
        assert not result.exists
        assert result.config is None

    def test_unparseable(self, tmp_path: Path) -> None:
        path = tmp_path / "deploy.yaml"
        path.write_text("providers: [unclosed")
        result = load_deploy_template(path)
        assert result.exists
        assert result.config is None
        assert result.error is not None
        assert result.error.startswith("Failed to load deploy config")

    def test_invalid_reports_first_error(self, tmp_path: Path, template_data: dict[str, Any]) -> None:
        template_data["version"] = "1"
        path = tmp_path / "deploy.yaml"
        path.write_text(yaml.safe_dump(template_data))
        result = load_deploy_template(path)
        assert result.error == f"Invalid deploy config '{path}': version must be '2'."

    def test_cheap_preset_scenario(self, tmp_path: Path) -> None:
        data: dict[str, Any] = {
            "version": "2",
            "providers": [{"id": "p1", "driver": {"type": "opentofu", "entry": "main.tf"}}],
            "environments": [
                {
                    "id": "staging",
                    "label": "Staging",
                    "provider": "p1",
                    "capabilities": ["appRuntime"],
                    "constraints": {},
                    "outputs": [],
                }
            ],
            "presets": [
                {
                    "id": "cheap",
                    "label": "Cheap",
                    "description": "Low cost",
                    "environments": ["staging"],
                    "constraints": {},
                }
            ],
        }
        path = tmp_path / "deploy.yaml"
        path.write_text(yaml.safe_dump(data))
        assert load_deploy_template(path).config is not None

        other = dict(data["presets"][0], id="ha", environments=["qa"])
        data["environments"].append(dict(data["environments"][0], id="qa", label="QA"))
        data["presets"] = [other]
        path.write_text(yaml.safe_dump(data))
        result = load_deploy_template(path)
        assert result.config is None
        assert "no compatible preset found for environment 'staging'" in (result.error or "")


class TestLoadTemplateForType:
    def test_loads(self, templates_dir: Path) -> None:
        template = load_template_for_type(templates_dir, "webapp")
        assert template.get_provider("aws") is not None

    def test_missing_definition(self, templates_dir: Path) -> None:
        with pytest.raises(TemplateValidationError, match="has no deploy.yaml definition"):
            load_template_for_type(templates_dir, "mobile")

    def test_invalid_definition(self, templates_dir: Path) -> None:
        (templates_dir / "webapp" / "deploy.yaml").write_text("version: '9'\n")
        with pytest.raises(TemplateValidationError, match="deploy config is invalid"):
            load_template_for_type(templates_dir, "webapp")


class TestOutputContract:
    def test_declared_outputs_pass(self, templates_dir: Path) -> None:
        template = load_template_for_type(templates_dir, "webapp")
        validate_output_contract(template, templates_dir / "webapp", "webapp")

    def test_missing_outputs_listed_sorted(self, templates_dir: Path) -> None:
        driver_dir = templates_dir / "webapp" / "infra" / "aws"
        (driver_dir / "main.tf").write_text('resource "x" "y" {}\n')
        template = load_template_for_type(templates_dir, "webapp")
        with pytest.raises(TemplateContractError) as exc_info:
            validate_output_contract(template, templates_dir / "webapp", "webapp")
        message = str(exc_info.value)
        assert "environment 'staging'" in message
        assert message.endswith("APP_BASE_URL")

    def test_outputs_with_default_are_exempt(self, templates_dir: Path) -> None:
        # LOG_LEVEL on prod has a default and is declared nowhere.
        template = load_template_for_type(templates_dir, "webapp")
        validate_output_contract(template, templates_dir / "webapp", "webapp")

    def test_outputs_found_in_nested_files(self, templates_dir: Path) -> None:
        driver_dir = templates_dir / "webapp" / "infra" / "aws"
        (driver_dir / "main.tf").write_text('output "APP_BASE_URL" { value = "x" }\n')
        (driver_dir / "modules").mkdir()
        (driver_dir / "modules" / "db.tf").write_text('output   "DATABASE_URL" {\n}\n')
        template = load_template_for_type(templates_dir, "webapp")
        validate_output_contract(template, templates_dir / "webapp", "webapp")

    def test_missing_entry(self, templates_dir: Path) -> None:
        template = load_template_for_type(templates_dir, "webapp")
        (templates_dir / "webapp" / "infra" / "aws" / "main.tf").unlink()
        with pytest.raises(TemplateContractError, match="driver entry not found"):
            validate_output_contract(template, templates_dir / "webapp", "webapp")

    def test_entry_without_tf_files(self, tmp_path: Path, template_data: dict[str, Any]) -> None:
        template_data["providers"][0]["driver"]["entry"] = "infra/aws/main.tf.json"
        template_dir = tmp_path / "webapp"
        (template_dir / "infra" / "aws").mkdir(parents=True)
        (template_dir / "infra" / "aws" / "main.tf.json").write_text("{}")
        (template_dir / "deploy.yaml").write_text(yaml.safe_dump(template_data))
        template = load_template_for_type(tmp_path, "webapp")
        with pytest.raises(TemplateContractError, match="no .tf files"):
            validate_output_contract(template, template_dir, "webapp")
