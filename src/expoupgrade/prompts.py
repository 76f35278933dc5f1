"""Prompt and response-schema builders for expo-doctor repair.

Everything here is pure: the same error log and manifest always render the
same prompt text, so the repair loop can be tested against scripted replies.
"""

from __future__ import annotations

import json
from typing import Any

from jinja2 import StrictUndefined, Template


SYSTEM_PROMPT = (
    "You are an Expo and React Native dependency expert. "
    "You repair package.json files so that expo-doctor reports no problems. "
    "You always answer with a single JSON object and nothing else."
)

UNTESTED_SECTION = "Untested on New Architecture"

REPAIR_PROMPT_TEMPLATE = """I'm getting an error when running "npx expo doctor" in my Expo project. Here's the error:
{{ error_log }}

and the package.json is:
{{ manifest_json }}

CRITICAL INSTRUCTIONS:
1. Look for ALL lines in the error that say "expected version: X.Y.Z"
2. Update EVERY package to use the EXACT version specified in the error
3. Remove any packages that the error says should not be installed directly (like expo-modules-core)
4. Keep all other packages that are not mentioned in the error
5. Ignore {{ untested_section }}: message and all the dependencies that are mentioned in that section.

For example, if the error says:
- expo@53.0.17 - expected version: 53.0.19
- expo-build-properties@0.13.1 - expected version: ~0.14.8
- @expo/vector-icons@14.0.2 - expected version: ^14.1.0

Then update the package.json to use:
- "expo": "53.0.19"
- "expo-build-properties": "0.14.8"
- "@expo/vector-icons": "14.1.0"

IMPORTANT: Do NOT keep old versions. Use ONLY the versions specified in the error log. Do NOT update devDependencies. When updating versions, remove ~ and ^.

Your response should be in JSON format with the following structure:
{
    "data": {{ data_hint }},
    "status": "success" or "error"
}

IMPORTANT: Set status to "success" ONLY if after applying the package.json updates, there would be NO remaining errors when running "npx expo doctor". If there would still be errors after the updates, set status to "error". Ignore the "{{ untested_section }}" section when analyzing remaining errors."""

# How the "data" field is described to the model
DATA_AS_OBJECT = "<the complete updated package.json as a JSON object>"
DATA_AS_STRING = "<the complete updated package.json as a JSON string>"


def format_manifest(manifest: dict[str, Any]) -> str:
    """Serialize a manifest exactly as it is embedded in prompts and on disk."""
    return json.dumps(manifest, indent=2, ensure_ascii=False)


def build_repair_prompt(
    error_log: str,
    manifest: dict[str, Any],
    data_as_object: bool = True,
) -> str:
    """Render the repair prompt.

    Args:
        error_log: Diagnostic output, embedded verbatim.
        manifest: Current package.json content, embedded as indented JSON.
        data_as_object: Ask for ``data`` as a nested object (schema-capable
            backends) rather than a JSON string.

    Returns:
        The prompt text.
    """
    template = Template(REPAIR_PROMPT_TEMPLATE, undefined=StrictUndefined, keep_trailing_newline=True)
    return template.render(
        error_log=error_log,
        manifest_json=format_manifest(manifest),
        untested_section=UNTESTED_SECTION,
        data_hint=DATA_AS_OBJECT if data_as_object else DATA_AS_STRING,
    )


def build_repair_schema() -> dict[str, Any]:
    """JSON schema for schema-constrained repair replies."""
    return {
        "type": "object",
        "properties": {
            "data": {
                "type": "object",
                "description": "The updated package.json content as a JSON object",
            },
            "status": {
                "type": "string",
                "description": "Status of the operation, should be 'success'",
            },
        },
        "required": ["data", "status"],
    }
