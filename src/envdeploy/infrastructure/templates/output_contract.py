"""Checks that provider sources declare every output an environment expects."""

from __future__ import annotations

import re
from pathlib import Path

from envdeploy.domain.errors import TemplateContractError
from envdeploy.domain.models.template import DeployTemplate, Provider


_OUTPUT_DECLARATION = re.compile(r'output\s+"([^"]+)"')


def _declared_outputs(provider: Provider, template_dir: Path, template_type: str) -> set[str]:
    entry_path = template_dir / provider.driver.entry
    if not entry_path.is_file():
        raise TemplateContractError(
            f"Template '{template_type}' provider '{provider.id}' driver entry not found: "
            f"{provider.driver.entry}"
        )
    tf_files = sorted(entry_path.parent.rglob("*.tf"))
    if not tf_files:
        raise TemplateContractError(
            f"Template '{template_type}' provider '{provider.id}' has no .tf files "
            f"under {entry_path.parent}"
        )
    declared: set[str] = set()
    for tf_file in tf_files:
        declared.update(_OUTPUT_DECLARATION.findall(tf_file.read_text(encoding="utf-8")))
    return declared


def validate_output_contract(
    template: DeployTemplate, template_dir: str | Path, template_type: str
) -> None:
    """Raise :class:`TemplateContractError` on the first environment with missing outputs.

    Outputs that carry a ``default`` are exempt.
    """
    directory = Path(template_dir)
    for provider in template.providers:
        declared = _declared_outputs(provider, directory, template_type)
        for environment in template.environments_for_provider(provider.id):
            missing = sorted(
                output.key
                for output in environment.outputs
                if not output.has_default and output.key not in declared
            )
            if missing:
                raise TemplateContractError(
                    f"Template '{template_type}' provider '{provider.id}' is missing outputs "
                    f"for environment '{environment.id}': {', '.join(missing)}"
                )
