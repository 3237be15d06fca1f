"""Plan identifiers of the form adjective-verb-noun (e.g. focused-creating-feature)."""

import random
import re
import time
from typing import Optional


ADJECTIVES = (
    "focused", "careful", "systematic", "strategic", "comprehensive",
    "detailed", "thorough", "analytical", "structured", "organized",
    "precise", "methodical", "deliberate", "calculated", "logical",
    "meticulous", "exact", "specific", "thoughtful", "intentional",
    "purposeful", "directed", "exploratory", "inquisitive", "curious",
    "investigative", "examinational",
)

VERBS = (
    "implementing", "building", "creating", "developing", "adding",
    "enhancing", "refactoring", "extending", "integrating", "modifying",
    "updating", "improving", "optimizing", "revamping", "overhauling",
    "redesigning", "restructuring", "reworking", "crafting", "constructing",
    "assembling", "engineering", "architecting", "formulating", "designing",
    "planning", "outlining", "sketching", "drafting", "prototyping",
    "modeling", "specifying", "defining", "establishing", "configuring",
    "customizing", "tailoring", "adapting", "expanding", "augmenting",
    "enriching", "fortifying", "strengthening", "reinforcing", "solidifying",
    "stabilizing", "securing", "protecting", "safeguarding",
)

NOUNS = (
    "feature", "system", "module", "component", "functionality",
    "capability", "interface", "workflow", "process", "architecture",
    "infrastructure", "function", "method", "class", "service",
    "handler", "utility", "helper", "library", "framework",
    "implementation", "solution", "mechanism", "pipeline", "strategy",
    "pattern", "abstraction", "layer", "package", "extension",
    "plugin", "integration", "connection", "bridge", "adapter",
    "wrapper", "facade", "manager", "controller", "response",
    "request", "protocol", "format", "structure", "schema",
    "definition", "specification",
)

SLUG_PATTERN = re.compile(r"^[a-z]+-[a-z]+-[a-z]+(?:-[a-z0-9]+)?$")

MAX_ATTEMPTS = 10


def generate_slug(rng: Optional[random.Random] = None) -> str:
    """Pick a random adjective-verb-noun slug."""
    rng = rng or random
    return f"{rng.choice(ADJECTIVES)}-{rng.choice(VERBS)}-{rng.choice(NOUNS)}"


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def generate_unique_slug(existing=(), rng: Optional[random.Random] = None) -> str:
    """Generate a slug not present in `existing`.

    After MAX_ATTEMPTS collisions a base-36 millisecond timestamp is
    appended to a fresh slug.
    """
    taken = set(existing)
    for _ in range(MAX_ATTEMPTS):
        slug = generate_slug(rng)
        if slug not in taken:
            return slug
    return f"{generate_slug(rng)}-{_base36(int(time.time() * 1000))}"


def is_valid_slug(slug: str) -> bool:
    return bool(slug) and bool(SLUG_PATTERN.match(slug))
