"""
System tag rule engine.

System tags are derived from image properties alone. Rules are plain records of
(tag slug, display name, predicate) evaluated in declaration order, so output is
deterministic and calling code never changes when a rule is added.

Aspect ratios are compared by integer cross-multiplication
(width * ratio_h == height * ratio_w); there is no floating-point tolerance.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from gallery.core.validators import split_tag_slug


@dataclass(frozen=True)
class ImageProperties:
    """Inputs available to rules. size_bytes is unused by the shipped rules."""

    width_px: int
    height_px: int
    size_bytes: int = 0


@dataclass(frozen=True)
class SystemTagRule:
    name: str
    label: str
    is_applicable: Callable[[ImageProperties], bool]


def has_aspect_ratio(width: int, height: int, ratio: tuple[int, int]) -> bool:
    ratio_w, ratio_h = ratio
    return width * ratio_h == height * ratio_w


def aspect_ratio_rule(ratio: tuple[int, int]) -> Callable[[ImageProperties], bool]:
    def is_applicable(image: ImageProperties) -> bool:
        return has_aspect_ratio(image.width_px, image.height_px, ratio)

    return is_applicable


def minimum_resolution_rule(
    min_width: int, min_height: int, ratios: Sequence[tuple[int, int]]
) -> Callable[[ImageProperties], bool]:
    """At least min_width x min_height and exactly one of the given aspect ratios."""

    def is_applicable(image: ImageProperties) -> bool:
        if image.width_px < min_width or image.height_px < min_height:
            return False
        return any(has_aspect_ratio(image.width_px, image.height_px, r) for r in ratios)

    return is_applicable


RATIO_16_9 = (16, 9)
RATIO_16_10 = (16, 10)
# DCI 4K (4096x2160)
RATIO_DCI_4K = (256, 135)

SYSTEM_TAG_KINDS: dict[str, str] = {
    "resolution": "Resolution",
    "aspect-ratio": "Aspect Ratio",
}

SYSTEM_TAG_RULES: tuple[SystemTagRule, ...] = (
    SystemTagRule(
        name="resolution/4k",
        label="4K",
        is_applicable=minimum_resolution_rule(3840, 2160, (RATIO_16_9, RATIO_DCI_4K)),
    ),
    SystemTagRule(
        name="aspect-ratio/16-9",
        label="16:9",
        is_applicable=aspect_ratio_rule(RATIO_16_9),
    ),
    SystemTagRule(
        name="aspect-ratio/16-10",
        label="16:10",
        is_applicable=aspect_ratio_rule(RATIO_16_10),
    ),
)


def resolve_system_tags(
    image: ImageProperties, rules: Sequence[SystemTagRule] = SYSTEM_TAG_RULES
) -> list[str]:
    """Return the slugs of all applicable rules, in rule declaration order."""
    return [rule.name for rule in rules if rule.is_applicable(image)]


def system_tag_vocabulary(
    rules: Sequence[SystemTagRule] = SYSTEM_TAG_RULES,
) -> list[tuple[str, str, str]]:
    """(tag slug, kind slug, display name) for every tag the rules can emit."""
    vocabulary = []
    for rule in rules:
        kind_slug, _ = split_tag_slug(rule.name)
        vocabulary.append((rule.name, kind_slug, rule.label))
    return vocabulary
