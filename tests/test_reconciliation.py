# tests/test_reconciliation.py
import pytest

from ficlib.models import Block, BlockType, Project, ProjectMetadata, SourceDocument
from ficlib.reconciliation import (
    apply_refresh,
    fingerprint,
    merge,
    preview_refresh,
    similarity,
)


def make_block(original: str, translated: str = "", type: BlockType = BlockType.TEXT) -> Block:
    block = Block.create(original, type)
    if translated:
        block.translated = translated
    return block


@pytest.fixture
def old_blocks() -> list[Block]:
    return [
        make_block("# Chapter 1", "# Capítulo 1", BlockType.HEADER),
        make_block("Hello there.", "Hola."),
        make_block("General Kenobi.", "General Kenobi."),
        make_block("You are a bold one."),
    ]


# ------------------------------------------------------------------
# Fingerprint
# ------------------------------------------------------------------

class TestFingerprint:

    def test_ignora_mayusculas_y_espacios(self):
        assert fingerprint("  Hello\n\tWORLD  ") == fingerprint("hello world")

    def test_none_o_vacio(self):
        assert fingerprint("") == ""
        assert fingerprint(None) == ""

    def test_textos_distintos_dan_huellas_distintas(self):
        assert fingerprint("Hello") != fingerprint("Hello!")


# ------------------------------------------------------------------
# Similarity
# ------------------------------------------------------------------

class TestSimilarity:

    def test_misma_version_es_cien(self, old_blocks):
        assert similarity(old_blocks, old_blocks) == 100

    def test_sin_bloques_de_texto_viejos_es_cero(self):
        headers = [make_block("# Title", type=BlockType.HEADER)]
        assert similarity(headers, [make_block("Hello")]) == 0

    def test_version_vacia_es_cero(self, old_blocks):
        assert similarity(old_blocks, []) == 0

    def test_porcentaje_redondeado(self, old_blocks):
        new = [make_block("Hello there."), make_block("Something else")]
        # 1 de 3 bloques de texto viejos sigue presente
        assert similarity(old_blocks, new) == 33

    def test_medio_punto_redondea_hacia_arriba(self):
        old = [make_block(f"Paragraph {i}.") for i in range(8)]
        new = [make_block("Paragraph 0.")]
        # 1 de 8 = 12.5 %
        assert similarity(old, new) == 13

    def test_solo_cuenta_texto(self, old_blocks):
        new = [make_block("# Chapter 1", type=BlockType.HEADER)]
        assert similarity(old_blocks, new) == 0


# ------------------------------------------------------------------
# Merge
# ------------------------------------------------------------------

class TestMerge:

    def test_recupera_traducciones_por_contenido(self, old_blocks):
        new = [make_block("Hello there."), make_block("A new line.")]
        merged = merge(old_blocks, new)
        assert merged[0].translated == "Hola."
        assert merged[1].translated == ""

    def test_orden_e_ids_son_los_de_la_version_nueva(self, old_blocks):
        new = [make_block("General Kenobi."), make_block("Hello there.")]
        merged = merge(old_blocks, new)
        assert [b.id for b in merged] == [b.id for b in new]
        assert [b.translated for b in merged] == ["General Kenobi.", "Hola."]

    def test_reordenamiento_e_insercion(self):
        old = [make_block("P1", "T1"), make_block("P2", "T2"), make_block("P3", "T3")]
        new = [make_block("P3"), make_block("P1"), make_block("NEW"), make_block("P2")]
        merged = merge(old, new)
        assert [b.translated for b in merged] == ["T3", "T1", "", "T2"]

    def test_favorito_y_nota_se_conservan_sin_traduccion(self):
        old = make_block("Keep me")
        old.is_favorite = True
        old.note = "importante"
        merged = merge([old], [make_block("keep   ME")])
        assert merged[0].is_favorite is True
        assert merged[0].note == "importante"

    def test_tipo_header_viaja_con_el_match(self):
        old = make_block("Prologue", "Prólogo", BlockType.HEADER)
        merged = merge([old], [make_block("Prologue")])
        assert merged[0].type == BlockType.HEADER

    def test_is_edited_se_conserva(self):
        old = make_block("Text", "Texto a mano")
        old.is_edited = True
        merged = merge([old], [make_block("Text")])
        assert merged[0].is_edited is True

    def test_sin_historia_devuelve_copias_de_lo_nuevo(self):
        new = [make_block("A"), make_block("B")]
        merged = merge([], new)
        assert [(b.id, b.original, b.translated) for b in merged] == \
               [(b.id, b.original, b.translated) for b in new]
        assert merged[0] is not new[0]

    def test_version_nueva_vacia(self, old_blocks):
        assert merge(old_blocks, []) == []

    def test_merge_consigo_mismo_es_identidad(self, old_blocks):
        merged = merge(old_blocks, old_blocks)
        assert merged == old_blocks

    def test_textos_repetidos_se_consumen_en_orden(self):
        old = [make_block("...", "uno"), make_block("...", "dos")]
        new = [make_block("..."), make_block("..."), make_block("...")]
        merged = merge(old, new)
        assert [b.translated for b in merged] == ["uno", "dos", "dos"]

    def test_bloques_sin_estado_no_se_usan(self):
        old = [make_block("Plain")]
        merged = merge(old, [make_block("Plain")])
        assert merged[0].translated == ""
        assert merged[0].is_favorite is False


# ------------------------------------------------------------------
# Refresh completo
# ------------------------------------------------------------------

class TestRefresh:

    def make_project(self, blocks) -> Project:
        return Project(
            id       = "p1",
            metadata = ProjectMetadata(title="Old", author="Ann", fandom="Star Wars", tags=["a"]),
            blocks   = blocks,
        )

    def test_preview_pide_confirmacion_bajo_el_umbral(self, old_blocks):
        preview = preview_refresh(old_blocks, [make_block("Nothing in common")])
        assert preview.similarity == 0
        assert preview.needs_confirmation is True

    def test_preview_sin_confirmacion_con_alta_similitud(self, old_blocks):
        preview = preview_refresh(old_blocks, old_blocks)
        assert preview.needs_confirmation is False

    def test_umbral_configurable(self, old_blocks):
        new = [make_block("Hello there.")]
        assert preview_refresh(old_blocks, new, threshold=50).needs_confirmation is True
        assert preview_refresh(old_blocks, new, threshold=30).needs_confirmation is False

    def test_apply_refresh_reindexa_y_actualiza_metadata(self, old_blocks):
        project = self.make_project(old_blocks)
        before  = project.last_modified - 1
        project.last_modified = before

        source = SourceDocument(
            title  = "New Title",
            blocks = [
                make_block("Hello there."),
                make_block("## Chapter 2", type=BlockType.HEADER),
                make_block("You are a bold one."),
            ],
            author = "",
            fandom = "Unknown",
        )
        apply_refresh(project, source)

        assert [b.chapter_index for b in project.blocks] == [0, 1, 1]
        assert project.blocks[0].translated == "Hola."
        assert project.metadata.title == "New Title"
        assert project.metadata.author == "Ann"       # vacío no pisa
        assert project.metadata.fandom == "Star Wars"  # desconocido no pisa
        assert project.metadata.tags == ["a"]          # sin tags no pisa
        assert project.last_modified > before

    def test_apply_refresh_actualiza_fandom_y_tags_conocidos(self, old_blocks):
        project = self.make_project(old_blocks)
        source = SourceDocument(
            title  = "",
            blocks = list(old_blocks),
            fandom = "Star Wars: Clone Wars",
            tags   = ["angst"],
        )
        apply_refresh(project, source)
        assert project.metadata.title == "Old"
        assert project.metadata.fandom == "Star Wars: Clone Wars"
        assert project.metadata.tags == ["angst"]

    def test_apply_refresh_fandom_general_no_pisa(self, old_blocks):
        project = self.make_project(old_blocks)
        source = SourceDocument(title="Old", blocks=list(old_blocks), fandom="General")
        apply_refresh(project, source)
        assert project.metadata.fandom == "Star Wars"


class TestEscenarioOrdenInvertido:

    def test_bloques_intercambiados(self):
        a = make_block("Alpha paragraph.", "x")
        a.is_favorite = True
        b = make_block("Beta paragraph.", "y")
        old = [a, b]
        new = [make_block("Beta paragraph."), make_block("alpha   PARAGRAPH.")]

        merged = merge(old, new)

        assert [m.id for m in merged] == [n.id for n in new]
        assert merged[0].translated == "y"
        assert merged[0].is_favorite is False
        assert merged[1].translated == "x"
        assert merged[1].is_favorite is True
        assert similarity(old, new) == 100
