from __future__ import annotations

import json
from typing import Optional

COLORING_PAGE_INSTRUCTIONS = (
    "Generate a black and white line art coloring page (8.5x8.5 inches) "
    "with the following specifications:"
)

ARTWORK_RULES = [
    "Pure white background - no shading, textures, or gray tones.",
    "Solid black lines only - all details drawn with 1mm thick uniform black lines, no gradients.",
    "Hand-drawn border - 1.5mm-2mm thick organic, slightly wavy border (no straight edges), "
    "placed 0.5cm inside the page edge.",
]

OUTPUT_REQUIREMENTS = "100% vector-friendly, high-contrast line art suitable for printing and coloring."

STYLE_GUIDELINES = [
    "Create a peaceful, engaging, and suitable-for-all-ages design",
    "Include interesting details that will be fun to color",
    "Ensure all elements are clearly defined with bold black outlines",
    "Not too complex for children but engaging enough for adults",
]


def build_coloring_page_prompt(subject: str, extra: Optional[str] = None) -> str:
    """Wrap a subject description in the line-art page specification."""
    subject = (subject or "").strip()
    lines = [
        COLORING_PAGE_INSTRUCTIONS,
        "",
        f"MAIN SUBJECT: {subject}",
    ]
    if extra and extra.strip():
        lines += ["", f"GENERAL STYLE: {extra.strip()}"]
    lines += ["", "ARTWORK SPECIFICATIONS:"]
    lines += [f"- {r}" for r in ARTWORK_RULES]
    lines += ["", "ADDITIONAL REQUIREMENTS:", f"- {OUTPUT_REQUIREMENTS}"]
    lines += ["", "STYLE GUIDELINES:"]
    lines += [f"- {g}" for g in STYLE_GUIDELINES]
    return "\n".join(lines)


def build_colorization_prompt(subject: str, has_reference: bool = False, extra: Optional[str] = None) -> str:
    base = (
        "Color this black and white line art coloring page. Keep every original line and the "
        "composition exactly as drawn; fill the regions with clean, vivid, harmonious colors."
    )
    if has_reference:
        base += " Use the second image as the color reference for palette and mood."
    if subject and subject.strip():
        base += f" Subject: {subject.strip()}."
    if extra and extra.strip():
        base += f" {extra.strip()}"
    return base


def build_themes_prompt(keyword: str, description: str, count: int) -> str:
    about = f'the keyword "{keyword}"'
    if description:
        about += f' and the description "{description}"'
    return f"""Based on {about}, create {count} distinct coloring page concepts.

Every concept must:
1. revolve around {keyword}
2. take a different creative angle
3. work as a black and white coloring page

Return a JSON array only. Each object has:
- title: a creative title
- description: a short description (at most 30 words)
- prompt: a detailed image generation prompt for the coloring page

Example:
[
  {{
    "title": "Butterfly Ball in the Garden",
    "description": "Butterflies dancing among the flowers",
    "prompt": "Detailed coloring page of butterflies dancing in a garden, intricate line art, flowers, black outlines"
  }}
]"""


def build_content_prompt(keyword: str, title: str, prompt: str) -> str:
    return f"""Write the companion text for a coloring book page.

Keyword: {keyword}
Title: {title}
Image description: {prompt}

Write three short parts (2-3 sentences each), warm and practical:
1. Coloring tips: concrete advice for coloring this {keyword} page
2. Coloring challenge: a fun creative challenge for this page
3. Benefits: how coloring this page helps body and mind

Plain text, sections introduced with these markers:
Coloring tips: ...
Coloring challenge: ...
Benefits: ..."""


def default_content(keyword: str, title: str) -> str:
    return (
        f"[{title}]\n\n"
        f"Coloring tips:\nStart with light colors on this {keyword} page and build darker layers "
        f"gradually. Gradients help show light and shadow and make the {keyword} feel alive.\n\n"
        f"Coloring challenge:\nTry a different tool, colored pencils, watercolor pens or markers, "
        f"or color the {keyword} in unexpected colors like blue or purple.\n\n"
        f"Benefits:\nColoring a {keyword} page helps you relax and lowers stress, while training "
        f"focus, hand-eye coordination and creativity."
    )


def build_translation_prompt(kind: str, items: list[dict], target_languages: list[str], fields: list[str]) -> str:
    return (
        f"Translate the following {kind} into these languages: {', '.join(target_languages)}.\n"
        f"Translate only the fields {', '.join(fields)}; keep meaning, tone and any formatting.\n"
        "Reply with a JSON object only, shaped as "
        '{"<item id>": {"<language code>": {"<field>": "<translation>"}}}.\n\n'
        f"Items:\n{json.dumps(items, ensure_ascii=False, indent=2)}"
    )
