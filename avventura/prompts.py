"""Handlebars rendering of the opening instruction prompt.

The instruction is sent once, as the first user turn of a conversation.
It pins the JSON reply shape, the target language and the "Choice N"
protocol used by every later user turn.
"""

from collections.abc import Callable
from typing import Any

import pybars

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "zh": "Chinese",
    "hi": "Hindi",
    "es": "Spanish",
    "fr": "French",
    "ar": "Arabic",
    "bn": "Bengali",
    "ru": "Russian",
    "pt": "Portuguese",
    "ur": "Urdu",
}
DEFAULT_LANGUAGE_NAME = "French"

RESPONSE_SCHEMA = """{
    "description": "Description of the current step",
    "options": [
      "Option 1",
      "Option 2",
      "Option 3"
    ],
    "action": "milestone"
}"""

INSTRUCTIONS_TEMPLATE = """# INSTRUCTIONS FOR THE MULTILINGUAL ADVENTURE

## Mandatory Response Format

At each step, provide ONLY a JSON object (nothing else) with this exact model:

{{{schema}}}

The "options" array must contain exactly 3 options.

**CRITICAL LANGUAGE INSTRUCTION:**
- Respond ENTIRELY in: {{language}}
- ALL text (descriptions, options, dialogue) must be in {{language}}
- Translate and adapt the story content naturally to {{language}}

**IMPORTANT:**
- Respond ONLY with the JSON, no other text
- Keep in memory the choices of the user: make the story progressive and avoid repetition
- The description MUST correspond to the previously selected option for continuity
- When the user reaches a significant story milestone (specified in the "## Milestones" section), set action to "milestone"
- For regular story progression, omit the action field or set it to "continue"
- Do not wrap the JSON in markdown code blocks or any other formatting

## Story Content:

{{{content}}}

## User Communication Protocol

After this initial setup, the user will communicate using only simple choice messages: "Choice 1", "Choice 2" or "Choice 3". Interpret "Choice N" as the user selecting the Nth option of your previous response and continue the story accordingly.

Now please start this adventure story from the beginning in {{language}}.
"""


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return compiled(context)
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def language_name(language_code: str) -> str:
    """Natural-language name for a code; unknown codes get the default."""
    return LANGUAGE_NAMES.get(language_code, DEFAULT_LANGUAGE_NAME)


def build_instructions(story_content: str, language_code: str) -> str:
    """Render the opening instruction for a story played in the given language."""
    return render_prompt(INSTRUCTIONS_TEMPLATE, {
        "schema": RESPONSE_SCHEMA,
        "language": language_name(language_code),
        "content": story_content,
    })
