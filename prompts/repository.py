"""Prompt template repository.

Templates are loaded from a directory:

    *.yaml / *.yml  LangChain-style prompt files
                    (`_type`, `input_variables`, `template`)
    *.txt           Plain templates; variables are inferred from the
                    placeholders they contain

The file stem is the template name (`story.yaml` -> "story").

Placeholders may be written `{name}` or `{{name}}`. Names are identifiers
with optional dots (`{player.name}`). Substitution is a single pass, and
placeholders without a value are left in the output unchanged. JSON examples
embedded in templates are not placeholders and pass through untouched.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_NAME = r"[A-Za-z_][A-Za-z0-9_.]*"
PLACEHOLDER = re.compile(rf"\{{\{{\s*({_NAME})\s*\}}\}}|\{{\s*({_NAME})\s*\}}")

TEMPLATE_SUFFIXES = (".yaml", ".yml", ".txt")


class TemplateNotFoundError(KeyError):
    """Raised when a template name is not in the repository."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Prompt template '{self.name}' not found"


def find_variables(template: str) -> list[str]:
    """Placeholder names in order of first appearance."""
    names = (m.group(1) or m.group(2) for m in PLACEHOLDER.finditer(template))
    return list(dict.fromkeys(names))


def substitute(template: str, variables: dict[str, str]) -> str:
    """Replace `{name}` and `{{name}}` placeholders in one pass.

    Unknown names are left verbatim. Values are inserted as-is and are not
    themselves scanned for placeholders.
    """

    def replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        if name in variables:
            return str(variables[name])
        return match.group(0)

    return PLACEHOLDER.sub(replace, template)


@dataclass
class PromptTemplate:
    """A named prompt template."""

    name: str
    template: str
    input_variables: list[str] = field(default_factory=list)
    template_type: str = "prompt"

    def format(self, **variables: str) -> str:
        return substitute(self.template, variables)


class TemplateRepository:
    """Named prompt templates.

    Example:
        >>> templates = TemplateRepository.from_directory("prompts/templates")
        >>> prompt = templates.format("summarize", {"playerAction": "Knock"})
    """

    def __init__(self, templates: dict[str, PromptTemplate] | None = None):
        self._templates: dict[str, PromptTemplate] = dict(templates or {})

    @classmethod
    def from_directory(cls, directory: Path | str) -> "TemplateRepository":
        """Load every template file in `directory`.

        Files that fail to parse are logged and skipped. A missing directory
        yields an empty repository.
        """
        repository = cls()
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning("Prompt directory not found | path=%s", directory)
            return repository

        for path in sorted(directory.iterdir()):
            if path.suffix.lower() not in TEMPLATE_SUFFIXES:
                continue
            try:
                repository.add(cls._load_file(path))
            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.error("Template load failed | file=%s error=%s", path.name, e)

        logger.info("Templates loaded | path=%s count=%d", directory, len(repository))
        return repository

    @staticmethod
    def _load_file(path: Path) -> PromptTemplate:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".txt":
            return PromptTemplate(path.stem, text, find_variables(text))

        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict) or not isinstance(data.get("template"), str):
            raise ValueError("YAML template must be a mapping with a 'template' string")
        template = data["template"]
        return PromptTemplate(
            name=path.stem,
            template=template,
            input_variables=[str(v) for v in data.get("input_variables") or find_variables(template)],
            template_type=str(data.get("_type", "prompt")),
        )

    def add(self, template: PromptTemplate) -> None:
        """Register a template, replacing any template with the same name."""
        self._templates[template.name] = template
        logger.debug("Template registered | name=%s variables=%d", template.name, len(template.input_variables))

    def get_template(self, name: str) -> PromptTemplate:
        """Look up a template.

        Raises:
            TemplateNotFoundError: If no template has this name
        """
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFoundError(name) from None

    def format(self, name: str, variables: dict[str, str]) -> str:
        """Substitute `variables` into the named template."""
        return substitute(self.get_template(name).template, variables)

    def names(self) -> list[str]:
        return sorted(self._templates)

    def __contains__(self, name: str) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)
