# ficlib/cli.py
import logging
import signal
import sys
import threading
from pathlib import Path

import click
from dotenv import load_dotenv

from ficlib.chapters import chapter_blocks, chapter_count
from ficlib.config import Settings, load_settings
from ficlib.errors import ConfigurationError, ProjectBusyError, ProjectNotFoundError
from ficlib.exporter import FORMATS, Exporter
from ficlib.factory import build_auto_backup, build_repository, build_scheduler
from ficlib.reconciliation import apply_refresh, preview_refresh
from ficlib.scheduler import (
    BatchScheduler,
    Completed,
    Failed,
    Loading,
    RunConfig,
    Stopped,
    WindowCompleted,
)
from ficlib.source.factory import SourceFactory, UnsupportedFormatError
from ficlib.store import (
    create_project,
    edit_translation,
    favorites,
    progress,
    set_bookmark,
    set_note,
    toggle_favorite,
    toggle_header,
)


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="ficlib")
@click.option("--config", "config_path", default=None, help="Ruta a config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Logging detallado (DEBUG)")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """
    FicLib — traductor de fanfics por lotes.

    Traduce obras largas con un LLM manteniendo continuidad narrativa,
    reanuda ejecuciones interrumpidas y absorbe nuevas versiones de la
    fuente sin perder traducciones, favoritos ni notas.
    """
    logging.basicConfig(
        level  = logging.DEBUG if verbose else logging.WARNING,
        format = "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ------------------------------------------------------------------
# ficlib translate
# ------------------------------------------------------------------

@main.command()
@click.option("--file", "-f", "file_path", type=click.Path(exists=False),
              help="Documento a traducir (.txt, .md, .pdf). Crea un proyecto nuevo.")
@click.option("--project", "-p", "project_id", help="Id de un proyecto existente (reanuda)")
@click.option("--to", "target_lang", metavar="LANG",
              help="Idioma de destino (ej: es, en, ja). 'original' copia el texto fuente.")
@click.option("--model", "-m", help="Modelo (ej: gemini-2.0-flash, claude-haiku-4-5-20251001)")
@click.option("--batch-size", type=int, help="Bloques por llamada")
@click.option("--context-window", type=int, help="Bloques previos enviados como contexto (0-10)")
@click.option("--detect-fandom/--no-detect-fandom", default=True, show_default=True,
              help="Identificar el fandom con el modelo si es desconocido")
@click.pass_context
def translate(
    ctx: click.Context,
    file_path: str | None,
    project_id: str | None,
    target_lang: str | None,
    model: str | None,
    batch_size: int | None,
    context_window: int | None,
    detect_fandom: bool,
):
    """Traduce un documento por lotes. Reejecutar con --project reanuda."""

    # ── Validaciones de entrada ───────────────────────────────────
    if bool(file_path) == bool(project_id):
        _abort("Indica exactamente uno de --file o --project.")
    if target_lang is not None:
        _validate_lang(target_lang, "--to")

    settings = _settings(ctx)
    repo     = build_repository(settings)

    # ── Proyecto nuevo o reanudación ──────────────────────────────
    if file_path:
        source = _parse_source(file_path)
        project = create_project(
            source,
            target_language = (target_lang or settings.target_lang).lower(),
            model           = model or settings.default_model,
            batch_size      = batch_size or settings.batch_size,
            context_window  = settings.context_window if context_window is None else context_window,
        )
        repo.save(project)
        click.echo(f"[ficlib] Nuevo proyecto: '{project.metadata.title}' (id={project.id})")
    else:
        project = _load_project(repo, project_id)
        meta = project.metadata
        if target_lang:
            meta.target_language = target_lang.lower()
        if model:
            meta.model = model
        if batch_size:
            meta.batch_size = batch_size
        if context_window is not None:
            meta.context_window = context_window
        click.echo(f"[ficlib] Reanudando '{meta.title}' (id={project.id})")

    # ── Ensamblar pipeline ────────────────────────────────────────
    scheduler = None
    if project.metadata.target_language != "original":
        try:
            scheduler = build_scheduler(project.metadata.model, settings, repo)
        except ConfigurationError as e:
            _abort(str(e))
    else:
        scheduler = BatchScheduler(client=_NullClient(), repo=repo)

    if file_path and detect_fandom and project.metadata.target_language != "original":
        fandom = scheduler.identify_fandom(project)
        click.echo(f"[ficlib] Fandom: {fandom}")

    # ── Ejecutar ──────────────────────────────────────────────────
    backup = build_auto_backup(settings, repo)
    if backup:
        backup.start()

    stop_event = threading.Event()
    previous_handler = _install_stop_handler(stop_event)
    config = RunConfig.for_project(project, settings.max_batch_size)

    try:
        terminal = scheduler.run_to_end(project, config, stop_event, on_event=_print_event)

    except ProjectBusyError as e:
        _abort(str(e))

    except ConfigurationError as e:
        _abort(str(e))

    except KeyboardInterrupt:
        click.echo(
            "\n[ficlib] Proceso interrumpido. "
            f"Ejecuta 'ficlib translate --project {project.id}' para reanudarlo desde donde quedó."
        )
        sys.exit(0)

    finally:
        signal.signal(signal.SIGINT, previous_handler)
        if backup:
            backup.stop()

    # ── Resumen final ─────────────────────────────────────────────
    _print_summary(project, terminal)
    if isinstance(terminal, Failed):
        sys.exit(2)


# ------------------------------------------------------------------
# ficlib refresh
# ------------------------------------------------------------------

@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--file", "-f", "file_path", required=True, type=click.Path(exists=False),
              help="Nueva versión del documento fuente")
@click.option("--yes", "-y", is_flag=True, help="No pedir confirmación si la similitud es baja")
@click.pass_context
def refresh(ctx: click.Context, project_id: str, file_path: str, yes: bool):
    """Absorbe una versión actualizada de la fuente sin perder lo traducido."""
    settings = _settings(ctx)
    repo     = build_repository(settings)
    project  = _load_project(repo, project_id)
    source   = _parse_source(file_path)

    preview = preview_refresh(project.blocks, source.blocks, settings.similarity_threshold)
    click.echo(f"[ficlib] Similitud con la versión guardada: {preview.similarity}%")

    if preview.needs_confirmation and not yes:
        click.echo(click.style(
            f"[ficlib] ⚠ Solo el {preview.similarity}% del texto coincide. "
            f"Puede que no sea la misma obra.",
            fg="yellow",
        ))
        if not click.confirm("¿Aplicar la actualización de todos modos?", default=False):
            click.echo("[ficlib] Sin cambios.")
            return

    apply_refresh(project, source)
    repo.save(project)

    done = progress(project.blocks)
    click.echo(
        f"[ficlib] ✓ Proyecto actualizado: {done.total} bloques, "
        f"{done.translated} ya traducidos ({done.percent}%)"
    )


# ------------------------------------------------------------------
# ficlib refine
# ------------------------------------------------------------------

@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--block", "-b", "block_id", required=True, help="Id del bloque")
@click.option("--instruction", "-i", required=True, help="Qué cambiar (ej: 'más informal')")
@click.pass_context
def refine(ctx: click.Context, project_id: str, block_id: str, instruction: str):
    """Reescribe la traducción de un bloque según una instrucción."""
    settings = _settings(ctx)
    repo     = build_repository(settings)
    project  = _load_project(repo, project_id)

    try:
        scheduler = build_scheduler(project.metadata.model, settings, repo)
        block = scheduler.refine_block(project, block_id, instruction)
    except (ConfigurationError, ProjectBusyError, ProjectNotFoundError, ValueError) as e:
        _abort(str(e))

    click.echo(block.translated)


# ------------------------------------------------------------------
# ficlib glossary
# ------------------------------------------------------------------

@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.pass_context
def glossary(ctx: click.Context, project_id: str):
    """Genera un glosario del fandom y lo guarda en el proyecto."""
    settings = _settings(ctx)
    repo     = build_repository(settings)
    project  = _load_project(repo, project_id)

    try:
        scheduler = build_scheduler(project.metadata.model, settings, repo)
        text = scheduler.generate_glossary(project)
    except ConfigurationError as e:
        _abort(str(e))

    if not text:
        _error("No se pudo generar el glosario.")
        sys.exit(2)
    click.echo(text)


# ------------------------------------------------------------------
# ficlib export
# ------------------------------------------------------------------

@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--format", "fmt", default="markdown", show_default=True,
              type=click.Choice(sorted(FORMATS), case_sensitive=False))
@click.option("--output", "-o", type=click.Path(), help="Ruta del archivo de salida")
@click.pass_context
def export(ctx: click.Context, project_id: str, fmt: str, output: str | None):
    """Exporta la traducción (markdown, html o txt)."""
    settings = _settings(ctx)
    repo     = build_repository(settings)
    project  = _load_project(repo, project_id)

    path = Exporter().build(project, fmt.lower(), Path(output) if output else None)
    click.echo(f"[ficlib] Output: {path}")


# ------------------------------------------------------------------
# ficlib list / delete
# ------------------------------------------------------------------

@main.command(name="list")
@click.pass_context
def list_projects(ctx: click.Context):
    """Lista los proyectos guardados, el más reciente primero."""
    repo = build_repository(_settings(ctx))
    projects = repo.list_projects()

    if not projects:
        click.echo("[ficlib] No hay proyectos guardados.")
        return

    for project in projects:
        done = progress(project.blocks)
        click.echo(
            f"{project.id}  {done.percent:>3}%  "
            f"[{project.metadata.target_language}]  {project.metadata.title}"
        )


@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--yes", "-y", is_flag=True, help="No pedir confirmación")
@click.pass_context
def delete(ctx: click.Context, project_id: str, yes: bool):
    """Elimina un proyecto completo."""
    repo = build_repository(_settings(ctx))
    project = _load_project(repo, project_id)

    if not yes and not click.confirm(
        f"¿Eliminar '{project.metadata.title}' y todas sus traducciones?", default=False
    ):
        click.echo("[ficlib] Sin cambios.")
        return

    repo.delete(project_id)
    click.echo(f"[ficlib] Proyecto {project_id} eliminado.")


# ------------------------------------------------------------------
# Ediciones del usuario: bookmark / favorite / note / edit / header
# ------------------------------------------------------------------

@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--block", "-b", "block_id", required=True, help="Id del bloque")
@click.pass_context
def bookmark(ctx: click.Context, project_id: str, block_id: str):
    """Marca la posición de lectura."""
    _annotate(ctx, project_id, lambda p: set_bookmark(p, block_id))
    click.echo(f"[ficlib] Marcador en {block_id}")


@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--block", "-b", "block_id", required=True, help="Id del bloque")
@click.pass_context
def favorite(ctx: click.Context, project_id: str, block_id: str):
    """Marca o desmarca un bloque como favorito."""
    block = _annotate(ctx, project_id, lambda p: toggle_favorite(p, block_id))
    state = "añadido a" if block.is_favorite else "quitado de"
    click.echo(f"[ficlib] Bloque {block_id} {state} favoritos")


@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--block", "-b", "block_id", required=True, help="Id del bloque")
@click.option("--text", "-t", required=True, help="Contenido de la nota ('' la borra)")
@click.pass_context
def note(ctx: click.Context, project_id: str, block_id: str, text: str):
    """Guarda una nota sobre un bloque."""
    _annotate(ctx, project_id, lambda p: set_note(p, block_id, text))
    click.echo(f"[ficlib] Nota guardada en {block_id}")


@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--block", "-b", "block_id", required=True, help="Id del bloque")
@click.option("--text", "-t", required=True, help="Traducción escrita a mano")
@click.pass_context
def edit(ctx: click.Context, project_id: str, block_id: str, text: str):
    """Reemplaza la traducción de un bloque (queda marcado como editado)."""
    _annotate(ctx, project_id, lambda p: edit_translation(p, block_id, text))
    click.echo(f"[ficlib] Traducción de {block_id} actualizada")


@main.command()
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--block", "-b", "block_id", required=True, help="Id del bloque")
@click.pass_context
def header(ctx: click.Context, project_id: str, block_id: str):
    """Convierte un bloque en cabecera de capítulo, o lo devuelve a texto."""
    # Reindexa: los límites de capítulo cambian
    block, blocks = _annotate(ctx, project_id, lambda p: (toggle_header(p, block_id), p.blocks))
    click.echo(
        f"[ficlib] Bloque {block_id} ahora es {block.type.value} "
        f"· {chapter_count(blocks)} capítulos"
    )


@main.command(name="favorites")
@click.option("--project", "-p", "project_id", required=True, help="Id del proyecto")
@click.option("--chapter", "-c", type=int, help="Solo los de este capítulo")
@click.pass_context
def list_favorites(ctx: click.Context, project_id: str, chapter: int | None):
    """Lista los bloques marcados como favoritos."""
    repo = build_repository(_settings(ctx))
    project = _load_project(repo, project_id)

    found = favorites(project)
    if chapter is not None:
        found = chapter_blocks(found, chapter)
    if not found:
        click.echo("[ficlib] No hay favoritos.")
        return

    for block in found:
        click.echo(f"{block.id}  [cap. {block.chapter_index}]  {block.translated or block.original}")
        if block.note:
            click.echo(f"    nota: {block.note}")


# ------------------------------------------------------------------
# ficlib backup / restore
# ------------------------------------------------------------------

@main.command()
@click.option("--output", "-o", required=True, type=click.Path(), help="Archivo JSON de destino")
@click.pass_context
def backup(ctx: click.Context, output: str):
    """Exporta todos los proyectos a un JSON."""
    settings = _settings(ctx)
    repo = build_repository(settings)
    path = repo.export_backup(Path(output), settings=_backup_settings(settings))
    click.echo(f"[ficlib] Backup guardado en: {path}")


@main.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Backup JSON (de ficlib o de la app web)")
@click.pass_context
def restore(ctx: click.Context, input_path: str):
    """Importa proyectos desde un backup JSON."""
    repo = build_repository(_settings(ctx))
    try:
        projects = repo.import_backup(Path(input_path))
    except ValueError as e:
        _abort(str(e))
    click.echo(f"[ficlib] {len(projects)} proyectos importados.")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

class _NullClient:
    """Cliente para el modo 'original': el Scheduler nunca lo llama."""
    name = "none"

    def is_configured(self) -> bool:
        return False


def _settings(ctx: click.Context) -> Settings:
    try:
        return load_settings(ctx.obj.get("config_path") if ctx.obj else None)
    except ConfigurationError as e:
        _abort(str(e))


def _parse_source(file_path: str):
    try:
        return SourceFactory().parse(file_path)
    except FileNotFoundError:
        _abort(f"Archivo no encontrado: {file_path}")
    except UnsupportedFormatError as e:
        _abort(str(e))


def _load_project(repo, project_id: str):
    try:
        return repo.load(project_id)
    except ProjectNotFoundError as e:
        _abort(str(e))


def _annotate(ctx: click.Context, project_id: str, action):
    repo = build_repository(_settings(ctx))
    project = _load_project(repo, project_id)
    try:
        result = action(project)
    except (ProjectNotFoundError, ValueError) as e:
        _abort(str(e))
    repo.save(project)
    return result


def _backup_settings(settings: Settings) -> dict:
    return {
        "translation": {
            "target_lang":    settings.target_lang,
            "selected_model": settings.default_model,
            "batch_size":     settings.batch_size,
            "context_window": settings.context_window,
        },
        "backup": {
            "auto_backup_enabled":     settings.auto_backup,
            "backup_interval_minutes": settings.backup_interval_minutes,
        },
    }


def _install_stop_handler(stop_event: threading.Event):
    """
    Primer Ctrl-C: parada cooperativa al terminar la ventana en curso.
    Segundo Ctrl-C: interrupción inmediata.
    """
    def handler(signum, frame):
        if stop_event.is_set():
            raise KeyboardInterrupt
        stop_event.set()
        click.echo("\n[ficlib] Deteniendo al terminar el lote actual... (Ctrl-C otra vez para abortar)")

    return signal.signal(signal.SIGINT, handler)


def _validate_lang(code: str, option: str) -> None:
    """Valida que el código de idioma sea razonable."""
    code = code.strip()

    if not code:
        _abort(f"{option} no puede estar vacío.")

    if not code.replace("-", "").isalpha():
        _abort(
            f"{option} contiene caracteres inválidos: '{code}'\n"
            f"Ejemplos válidos: en, es, ja, zh-CN, pt-br"
        )

    if len(code) > 10:
        _abort(f"{option}: código de idioma demasiado largo: '{code}'")


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _print_event(event) -> None:
    done = event.progress
    if isinstance(event, Loading):
        click.echo(
            f"[ficlib] Traduciendo lote {event.window_index + 1}/{event.window_count}..."
        )
    elif isinstance(event, WindowCompleted):
        click.echo(f"[ficlib]   {done.translated}/{done.total} bloques ({done.percent}%)")
    elif isinstance(event, Failed):
        _error(f"Lote {event.window_index + 1} falló: {type(event.error).__name__}: {event.error}")


def _print_summary(project, terminal) -> None:
    """Imprime el resumen final del pipeline."""
    done = progress(project.blocks)

    click.echo("")
    click.echo("─" * 50)
    if isinstance(terminal, Completed):
        click.echo("[ficlib] ✓ Proceso completado")
    elif isinstance(terminal, Stopped):
        click.echo("[ficlib] ⚠ Proceso detenido")
    else:
        click.echo(click.style("[ficlib] ✗ Proceso abortado por error", fg="red"))
    click.echo(f"[ficlib]   Proyecto     : {project.id}")
    click.echo(f"[ficlib]   Total bloques: {done.total}")
    click.echo(f"[ficlib]   Traducidos   : {done.translated} ({done.percent}%)")

    pending = sum(1 for b in project.blocks if b.needs_translation)
    if pending:
        click.echo(f"[ficlib]   Pendientes   : {pending}")
        click.echo(f"[ficlib]   Reanudar con : ficlib translate --project {project.id}")
    click.echo("─" * 50)


def _abort(message: str) -> None:
    """Error de validación — culpa del usuario."""
    click.echo(click.style(f"[ficlib] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema — no es culpa del usuario."""
    click.echo(click.style(f"[ficlib] {message}", fg="red"), err=True)
