"""
Style catalogue: prompt templates for each named transformation
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional

STYLE_TOKEN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")

DEFAULT_DESCRIPTION_PROMPT = "Describe the image."
DEFAULT_GENERATION_TEMPLATE = "Create an image in the style of {style} based on: {description}"


@dataclass(frozen=True)
class StyleProfile:
    name: str
    description_prompt: str = DEFAULT_DESCRIPTION_PROMPT
    generation_template: str = DEFAULT_GENERATION_TEMPLATE

    def build_prompt(self, description: str) -> str:
        return self.generation_template.format(style=self.name, description=description.strip())


BUILTIN_STYLES: Dict[str, StyleProfile] = {
    "watercolor": StyleProfile(
        name="watercolor",
        generation_template="A watercolor painting of {description}",
    ),
    "cubism": StyleProfile(
        name="cubism",
        description_prompt=(
            "Describe the image, then explain how it would look as a cubist painting."
        ),
    ),
    "picasso": StyleProfile(
        name="picasso",
        description_prompt=(
            "Describe the image, then explain how Pablo Picasso would paint it."
        ),
    ),
}


def is_valid_style(token: Optional[str]) -> bool:
    return bool(token) and STYLE_TOKEN.match(token) is not None


def resolve_style(token: Optional[str]) -> Optional[StyleProfile]:
    """
    Map a requested style token to a profile.

    Built-in styles carry their own prompts; any other well-formed token gets
    the generic profile. Returns None when the token cannot name a
    transformation (empty, or unsafe to embed in a file name).
    """
    if not is_valid_style(token):
        return None
    builtin = BUILTIN_STYLES.get(token.lower())
    if builtin is not None:
        return StyleProfile(
            name=token,
            description_prompt=builtin.description_prompt,
            generation_template=builtin.generation_template,
        )
    return StyleProfile(name=token)
