# client/prompt_builder.py
import json

from ficlib.client.models import TranslationOptions


DEFAULT_PROMPT = """\
You are a professional literary translator specializing in Fanfiction.
Maintain the character's voice, tone, and narrative style.
Use fandom-specific terminology correctly.
Optimize typography for reading comfort."""

DEFAULT_REFINE_PROMPT = """\
You are a professional editor.
Task: specific improvement of a translation segment.

Context:
Fandom: {{fandom}}
Target Language: {{targetLang}}

Source:
{{original}}

Current Draft:
{{translated}}

Instruction:
{{instruction}}

Requirements:
1. Output ONLY the result.
2. Do not include "Here is the translation".
3. If the instruction asks to re-translate, ignore the Current Draft."""

REFINE_SYSTEM = """\
You are a professional literary translator and editor.
Your task is to REWRITE the "Current Draft" based on the "User Instruction".
If the User Instruction asks for a translation or correction, output ONLY the final corrected text.
Do not output explanation. Do not output markdown code fences."""

_BATCH_TASK = """\
Task: Translate the following array of text blocks.

Guidelines:
1. Output MUST be a JSON array of strings, with exactly corresponding indices to the input.
2. Ensure narrative flow connects smoothly with the context provided.

Input Blocks:
{blocks}"""

_FANDOM_PROMPT = """\
Analyze the following text sample from a fanfiction. Identify the "Fandom" \
(the original work, show, book, or game it is based on). Return ONLY the name \
of the fandom. If unknown, return "General".

Text: "{sample}..."
"""

_GLOSSARY_PROMPT = """\
Task: Create a concise glossary for the fandom "{fandom}".
Target Language: {target_lang}

Include:
1. Key Character Names (Original -> Translated)
2. Specific Terminology / Jargon (Original -> Translated)
3. Location Names

Output Format:
Original Term: Translated Term (Brief Note if needed)

Keep it strictly relevant to translation and helpful for maintaining consistency. \
Do not output conversational text."""

FANDOM_SAMPLE_CHARS = 1000


def build_batch_prompt(
    texts:       list[str],
    target_lang: str,
    fandom:      str,
    options:     TranslationOptions,
) -> str:
    """
    Prompt completo de un lote: instrucciones, metadata del trabajo,
    glosario, contexto previo (solo lectura) y los bloques en JSON.
    """
    sections = [
        (options.custom_prompt or DEFAULT_PROMPT).strip(),
        f"Target Language: {target_lang}\nFandom Context: {fandom}",
    ]

    if options.tags:
        tag_lines = f"Work Tags/Keywords: {', '.join(options.tags)}"
        if options.tag_instruction:
            tag_lines += f"\nInstruction for Tags: {options.tag_instruction}"
        sections.append(tag_lines)

    if options.glossary:
        sections.append(f"Glossary / Style Guide:\n{options.glossary.strip()}")

    if options.previous_context:
        sections.append(
            "CONTEXT FROM PREVIOUS SECTION (For continuity only, DO NOT TRANSLATE THIS):\n"
            f'"{options.previous_context}"'
        )

    sections.append(_BATCH_TASK.format(blocks=json.dumps(texts, ensure_ascii=False)))
    return "\n\n".join(sections)


def build_refine_prompt(
    template:            str,
    original:            str,
    current_translation: str,
    target_lang:         str,
    fandom:              str,
    instruction:         str,
) -> str:
    """Interpola los marcadores {{...}} de la plantilla de refinado."""
    replacements = {
        "{{original}}":    original,
        "{{translated}}":  current_translation,
        "{{targetLang}}":  target_lang,
        "{{fandom}}":      fandom,
        "{{instruction}}": instruction,
    }
    prompt = template or DEFAULT_REFINE_PROMPT
    for marker, value in replacements.items():
        prompt = prompt.replace(marker, value)
    return prompt


def build_fandom_prompt(sample_text: str) -> str:
    return _FANDOM_PROMPT.format(sample=sample_text[:FANDOM_SAMPLE_CHARS])


def build_glossary_prompt(fandom: str, target_lang: str) -> str:
    return _GLOSSARY_PROMPT.format(fandom=fandom, target_lang=target_lang)
