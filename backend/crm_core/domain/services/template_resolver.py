"""
Template Variable Resolver
Per-contact values for positional WhatsApp template placeholders ({{1}}, {{2}}, ...)
"""
import re
from typing import Dict, List, Mapping, Sequence

from crm_core.core.exceptions import ValidationError
from crm_core.domain.models.campaign import CampaignContactSnapshot
from crm_core.domain.models.template_mapping import (
    CustomFieldSource,
    FixedFieldSource,
    StaticValueSource,
    TemplateVariableMapping,
)

# Value used when a contact lacks the mapped data
EMPTY_PLACEHOLDER = ""

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\d+)\s*\}\}")


def _stringify(value) -> str:
    if value is None:
        return EMPTY_PLACEHOLDER
    return value if isinstance(value, str) else str(value)


def resolve(
    mapping: Sequence[TemplateVariableMapping],
    contact: CampaignContactSnapshot,
) -> Dict[int, str]:
    """
    Resolve every mapped position for one contact.

    Missing contact data resolves to an empty placeholder, never raises.
    """
    values: Dict[int, str] = {}
    for entry in mapping:
        source = entry.source
        if isinstance(source, FixedFieldSource):
            value = getattr(contact, source.field, None)
        elif isinstance(source, CustomFieldSource):
            value = contact.attributes.get(source.field_name)
        elif isinstance(source, StaticValueSource):
            value = source.value
        else:
            value = None
        values[entry.position] = _stringify(value)
    return values


def mapping_problems(
    mapping: Sequence[TemplateVariableMapping],
    variable_count: int,
) -> List[str]:
    """List every reason the mapping is not launch-ready (empty if ready)"""
    problems: List[str] = []
    by_position = {}
    for entry in mapping:
        if entry.position in by_position:
            problems.append(f"position {entry.position} is mapped more than once")
        by_position[entry.position] = entry

    for position in range(1, variable_count + 1):
        entry = by_position.get(position)
        if entry is None:
            problems.append(f"position {position} is not mapped")
            continue
        source = entry.source
        if isinstance(source, CustomFieldSource) and not source.field_name.strip():
            problems.append(f"position {position} has no custom field selected")
        elif isinstance(source, StaticValueSource) and not source.value.strip():
            problems.append(f"position {position} has an empty static value")

    for position in sorted(by_position):
        if position > variable_count:
            problems.append(f"position {position} does not exist in the template")

    return problems


def validate_mapping(
    mapping: Sequence[TemplateVariableMapping],
    variable_count: int,
) -> None:
    """
    Fail fast before launch.

    Raises:
        ValidationError: With every problem listed in details["problems"]
    """
    problems = mapping_problems(mapping, variable_count)
    if problems:
        raise ValidationError(
            "Template variable mapping is incomplete",
            {"problems": problems},
        )


def count_variables(body_text: str) -> int:
    """Highest placeholder position used in a template body"""
    positions = [int(p) for p in _PLACEHOLDER_RE.findall(body_text or "")]
    return max(positions, default=0)


def render(body_text: str, values: Mapping[int, str]) -> str:
    """Substitute {{n}} placeholders; unknown positions become empty"""
    return _PLACEHOLDER_RE.sub(
        lambda m: values.get(int(m.group(1)), EMPTY_PLACEHOLDER),
        body_text or "",
    )
