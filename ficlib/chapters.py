# ficlib/chapters.py
from dataclasses import replace

from ficlib.models import Block, BlockType


def reindex(blocks: list[Block]) -> list[Block]:
    """
    Recalcula chapter_index para toda la secuencia. Función pura:
    devuelve copias, no toca los bloques recibidos.

    Cada header incrementa el contador antes de asignarse, salvo el
    primer bloque de la secuencia (suele ser el título de la obra).
    """
    current = 0
    result: list[Block] = []

    for position, block in enumerate(blocks):
        if block.type == BlockType.HEADER and position > 0:
            current += 1
        result.append(replace(block, chapter_index=current))

    return result


def chapter_count(blocks: list[Block]) -> int:
    if not blocks:
        return 0
    return blocks[-1].chapter_index + 1


def chapter_blocks(blocks: list[Block], chapter_index: int) -> list[Block]:
    return [b for b in blocks if b.chapter_index == chapter_index]
