# tests/client/test_prompt_builder.py
import json

from ficlib.client.models import TranslationOptions
from ficlib.client.prompt_builder import (
    DEFAULT_PROMPT,
    DEFAULT_REFINE_PROMPT,
    FANDOM_SAMPLE_CHARS,
    build_batch_prompt,
    build_fandom_prompt,
    build_glossary_prompt,
    build_refine_prompt,
)


class TestBatchPrompt:

    def test_incluye_bloques_como_json(self):
        texts  = ["Hello", "¿Qué tal?"]
        prompt = build_batch_prompt(texts, "es", "Naruto", TranslationOptions(model="m"))
        assert json.dumps(texts, ensure_ascii=False) in prompt
        assert "Target Language: es" in prompt
        assert "Fandom Context: Naruto" in prompt

    def test_prompt_por_defecto(self):
        prompt = build_batch_prompt(["x"], "es", "F", TranslationOptions(model="m"))
        assert prompt.startswith(DEFAULT_PROMPT)

    def test_prompt_personalizado_reemplaza_al_defecto(self):
        options = TranslationOptions(model="m", custom_prompt="Translate like a pirate.")
        prompt  = build_batch_prompt(["x"], "es", "F", options)
        assert prompt.startswith("Translate like a pirate.")
        assert DEFAULT_PROMPT not in prompt

    def test_contexto_previo_marcado_como_no_traducible(self):
        options = TranslationOptions(model="m", previous_context="Line A\nLine B")
        prompt  = build_batch_prompt(["x"], "es", "F", options)
        assert "DO NOT TRANSLATE THIS" in prompt
        assert "Line A\nLine B" in prompt

    def test_sin_contexto_no_hay_seccion(self):
        prompt = build_batch_prompt(["x"], "es", "F", TranslationOptions(model="m"))
        assert "CONTEXT FROM PREVIOUS SECTION" not in prompt

    def test_tags_y_glosario(self):
        options = TranslationOptions(
            model           = "m",
            tags            = ["Angst", "Slow Burn"],
            tag_instruction = "Keep tags in English",
            glossary        = "Hokage: Hokage",
        )
        prompt = build_batch_prompt(["x"], "es", "F", options)
        assert "Work Tags/Keywords: Angst, Slow Burn" in prompt
        assert "Instruction for Tags: Keep tags in English" in prompt
        assert "Hokage: Hokage" in prompt


class TestRefinePrompt:

    def test_interpola_todos_los_marcadores(self):
        prompt = build_refine_prompt(
            DEFAULT_REFINE_PROMPT, "Hello", "Hola", "es", "Naruto", "más formal",
        )
        assert "{{" not in prompt
        assert "Hello" in prompt and "Hola" in prompt and "más formal" in prompt

    def test_plantilla_vacia_usa_la_de_defecto(self):
        prompt = build_refine_prompt("", "Hello", "Hola", "es", "F", "x")
        assert "Current Draft:\nHola" in prompt


class TestPromptsAuxiliares:

    def test_fandom_recorta_la_muestra(self):
        prompt = build_fandom_prompt("a" * (FANDOM_SAMPLE_CHARS * 2))
        assert "a" * FANDOM_SAMPLE_CHARS in prompt
        assert "a" * (FANDOM_SAMPLE_CHARS + 1) not in prompt

    def test_glosario(self):
        prompt = build_glossary_prompt("Haikyuu!!", "es")
        assert '"Haikyuu!!"' in prompt
        assert "Target Language: es" in prompt
