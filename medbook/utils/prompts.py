"""Prompt loading.

Prompts are YAML files with ``system`` and ``user`` keys shipped in the
package's ``prompts/`` directory.
"""

from pathlib import Path

import yaml

from medbook.config import PROMPTS_DIR


def resolve_prompt_path(prompt_name: str, prompts_dir: Path | None = None) -> Path:
    """Resolve a prompt name to its full YAML file path.

    Args:
        prompt_name: Prompt name like "extract_appointment"
        prompts_dir: Directory override (defaults to PROMPTS_DIR)

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    yaml_path = Path(prompts_dir or PROMPTS_DIR) / f"{prompt_name}.yaml"
    if not yaml_path.exists():
        raise FileNotFoundError(f"Prompt not found: {yaml_path}")
    return yaml_path


def load_prompt(prompt_name: str, prompts_dir: Path | None = None) -> dict:
    """Load a YAML prompt template.

    Returns:
        Dictionary with prompt content (typically 'system' and 'user' keys)

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    path = resolve_prompt_path(prompt_name, prompts_dir=prompts_dir)

    with open(path) as f:
        return yaml.safe_load(f)
