"""
Elicit Template Sources

Loads the question template catalog (templates, phase transitions,
follow-up and adaptive rules) from YAML or JSON. Loading happens once per
engine and runs off the event loop.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from elicit.errors import TemplateSourceError, TemplatesNotFoundError
from elicit.models import TemplateData

logger = logging.getLogger(__name__)

BUNDLED_TEMPLATES_PATH = Path(__file__).parent / "data" / "questions.yaml"

YAML_SUFFIXES = {".yaml", ".yml"}


class TemplateSource(Protocol):
    """Anything that can produce a TemplateData catalog."""

    async def load(self) -> TemplateData:
        ...


def validate_template_data(data: TemplateData, path: str = "<memory>") -> TemplateData:
    """
    Check cross-references the model alone cannot.

    Raises:
        TemplateSourceError: Duplicate template ids or follow-ups pointing
            at unknown templates
    """
    seen: set[str] = set()
    for template in data.templates:
        if template.id in seen:
            raise TemplateSourceError(path, f"duplicate template id '{template.id}'")
        seen.add(template.id)

    for template in data.templates:
        dangling = [fid for fid in template.follow_ups if fid not in seen]
        if dangling:
            raise TemplateSourceError(
                path, f"template '{template.id}' has unknown follow-ups {dangling}"
            )

    return data


def parse_template_data(raw: dict, path: str = "<memory>") -> TemplateData:
    """Validate a raw mapping (snake_case or camelCase keys) into TemplateData."""
    if not isinstance(raw, dict):
        raise TemplateSourceError(path, "top level must be a mapping")
    try:
        data = TemplateData.model_validate(raw)
    except PydanticValidationError as e:
        raise TemplateSourceError(path, str(e)) from e
    return validate_template_data(data, path)


def load_template_data(path: Union[str, Path]) -> TemplateData:
    """
    Read and validate a template file synchronously.

    Args:
        path: .yaml/.yml or .json file

    Raises:
        TemplatesNotFoundError: File does not exist
        TemplateSourceError: File cannot be parsed or validated
    """
    path = Path(path)
    if not path.exists():
        raise TemplatesNotFoundError(str(path))

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in YAML_SUFFIXES:
                raw = yaml.safe_load(f)
            else:
                raw = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise TemplateSourceError(str(path), f"parse error: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateSourceError(str(path), f"unreadable: {e}") from e

    data = parse_template_data(raw, str(path))
    logger.info(f"Loaded {len(data.templates)} question templates from {path}")
    return data


class FileTemplateSource:
    """Template source backed by a YAML or JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def load(self) -> TemplateData:
        return await asyncio.to_thread(load_template_data, self.path)

    def __repr__(self) -> str:
        return f"FileTemplateSource({str(self.path)!r})"


class StaticTemplateSource:
    """Template source wrapping an already-built catalog (tests, embedding)."""

    def __init__(self, data: Union[TemplateData, dict]):
        if isinstance(data, TemplateData):
            self.data = validate_template_data(data)
        else:
            self.data = parse_template_data(data)

    async def load(self) -> TemplateData:
        return self.data
