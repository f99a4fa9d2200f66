"""Command line interface: emit diagrams, check drift, toggle build integration."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .buildprops import (
    find_directory_build_props,
    find_or_create_directory_build_props,
    find_solution,
    has_package_reference,
    project_enablement,
    read_property,
    remove_package_reference,
    set_project_enablement,
    upsert_package_reference,
    upsert_property,
)
from .config import DiagramSettings, load_settings
from .errors import InputError, NotFoundError, TypeDiagramError
from .extract import default_output_path, extract_solution
from .materialize import files_equal, write_if_changed
from .render import render_diagram
from .workspace import solution_projects

app = typer.Typer(
    help='Generate Mermaid class diagrams from C# solutions and keep them in sync.',
    no_args_is_help=False,
)

EXIT_FAILURE = 1
EXIT_EMIT_FAILED = 3
EXIT_DRIFT = 5

ROOT_OPTION = typer.Option(
    None,
    '--root',
    help='Working root for settings and build files (defaults to the current directory).',
    dir_okay=True,
    file_okay=False,
)

OUT_OPTION = typer.Option(
    None,
    '--out',
    '-o',
    help='Output .mmd file (defaults next to the project or solution).',
)

DIRECTION_OPTION = typer.Option(
    None,
    '--direction',
    '-d',
    help='Mermaid direction: LR, TB, BT or RL.',
    show_default=False,
)

MIN_ACCESS_OPTION = typer.Option(
    None,
    '--min-access',
    '-a',
    help='Minimum accessibility: public, internal, protected or private.',
    show_default=False,
)

PACKAGE_VERSION_OPTION = typer.Option(
    None,
    '--version',
    help='Package version to reference.',
)

SOLUTION_OPTION = typer.Option(
    default=False,
    help='Apply to every project of the solution in the root directory.',
)
SOLUTION_OPTION.param_decls = ('--solution',)

PROJECT_OPTION = typer.Option(
    None,
    '--project',
    help='Path to a specific .csproj.',
)

VERBOSE_OPTION = typer.Option(
    default=False,
    help='Log extraction details.',
)
VERBOSE_OPTION.param_decls = ('--verbose',)

VERSION_OPTION = typer.Option(
    default=False,
    help='Show version and exit.',
)
VERSION_OPTION.param_decls = ('--version', '-v')


@dataclass
class CLIState:
    """Holds CLI context: working root, console and effective settings."""

    project_root: Path
    console: Console
    settings: DiagramSettings


def _get_state(ctx: typer.Context) -> CLIState:
    return ctx.ensure_object(CLIState)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(console: Console, message: str, code: int = EXIT_FAILURE) -> typer.Exit:
    console.print(message, style='red', markup=False, soft_wrap=True)
    return typer.Exit(code=code)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    root: Path | None = ROOT_OPTION,
    verbose: bool = VERBOSE_OPTION,  # noqa: FBT001
    version: bool = VERSION_OPTION,  # noqa: FBT001
) -> None:
    """Initialise CLI context."""
    console = Console()
    if version:
        console.print(f'typediagram version {__version__}')
        raise typer.Exit(0)

    if ctx.invoked_subcommand is None:
        console.print('[yellow]No command specified. Use --help to see available commands.[/]')
        raise typer.Exit(0)

    _configure_logging(verbose)
    project_root = (root or Path.cwd()).resolve()
    try:
        settings = load_settings(project_root)
    except InputError as e:
        raise _fail(console, str(e)) from None
    ctx.obj = CLIState(project_root=project_root, console=console, settings=settings)


# Diagram commands -------------------------------------------------------------


@app.command('emit')
def emit(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help='Path to a .sln, .slnx or .csproj.'),
    out: Path | None = OUT_OPTION,
    direction: str | None = DIRECTION_OPTION,
    min_access: str | None = MIN_ACCESS_OPTION,
) -> None:
    """Generate a Mermaid class diagram for a solution or project.

    The diagram is only rewritten when its content changes, so re-running on
    an unchanged codebase leaves the file (and its timestamp) alone.
    """
    state = _get_state(ctx)
    settings = state.settings.override(direction=direction, min_access=min_access)
    descriptor = path.resolve()
    if out is not None:
        target = out.resolve()
    elif settings.output:
        target = (state.project_root / settings.output).resolve()
    else:
        target = default_output_path(descriptor)

    try:
        solution = extract_solution(descriptor, settings.min_access)
        changed = write_if_changed(target, render_diagram(solution, settings.direction))
    except (TypeDiagramError, OSError) as e:
        raise _fail(state.console, f'[emit] error: {e}', EXIT_EMIT_FAILED) from None

    verb = 'wrote' if changed else 'unchanged'
    state.console.print(f'{verb}: {target}', markup=False, soft_wrap=True)
    logging.getLogger(__name__).debug(
        '%d projects, %d types, %d relations',
        len(solution.projects),
        solution.total_types,
        solution.total_relations,
    )


@app.command('diff')
def diff(
    ctx: typer.Context,
    old_file: Path = typer.Argument(..., help='Previously generated diagram.'),
    new_file: Path = typer.Argument(..., help='Freshly generated diagram.'),
) -> None:
    """Compare two diagrams byte for byte; exit 5 when they differ."""
    state = _get_state(ctx)
    try:
        same = files_equal(old_file.resolve(), new_file.resolve())
    except NotFoundError:
        raise _fail(state.console, 'Both files must exist.') from None
    except OSError as e:
        raise _fail(state.console, f'[diff] error: {e}') from None

    if same:
        state.console.print('No drift.')
        return
    state.console.print('Drift detected.')
    raise typer.Exit(code=EXIT_DRIFT)


# Build integration commands ---------------------------------------------------


def _resolve_project(state: CLIState, project: Path) -> Path:
    return project if project.is_absolute() else (state.project_root / project).resolve()


def _toggle(ctx: typer.Context, enabled: bool, solution: bool, project: Path | None) -> None:
    state = _get_state(ctx)
    settings = state.settings
    verb = 'Enabled' if enabled else 'Disabled'
    try:
        if project is not None:
            target = _resolve_project(state, project)
            set_project_enablement(target, enabled, settings.enabled_property)
            state.console.print(f'{verb} in {target}', markup=False, soft_wrap=True)
            return

        if solution:
            sln = find_solution(state.project_root)
            if sln is None:
                raise _fail(state.console, 'No .sln found in current directory.')
            for _, csproj in solution_projects(sln):
                set_project_enablement(csproj, enabled, settings.enabled_property)
                state.console.print(f'{verb} in {csproj}', markup=False, soft_wrap=True)
            return

        props = find_or_create_directory_build_props(state.project_root)
        upsert_property(props, settings.enabled_property, 'true' if enabled else 'false')
    except (TypeDiagramError, ET.ParseError, OSError) as e:
        raise _fail(state.console, f'[{verb.lower()}] error: {e}') from None
    state_label = 'ENABLED' if enabled else 'DISABLED'
    state.console.print(
        f'Repo default set to [bold]{state_label}[/] in {escape(str(props))}', soft_wrap=True
    )


@app.command('install')
def install(
    ctx: typer.Context,
    version: str | None = PACKAGE_VERSION_OPTION,
) -> None:
    """Reference the build package in Directory.Build.props (repo-wide)."""
    state = _get_state(ctx)
    settings = state.settings
    chosen = version.strip() if version and version.strip() else settings.package_version
    try:
        props = find_or_create_directory_build_props(state.project_root)
        upsert_package_reference(props, settings.package_id, chosen)
        upsert_property(props, settings.enabled_property, 'true')
    except (ET.ParseError, OSError) as e:
        raise _fail(state.console, f'[install] error: {e}') from None
    state.console.print(
        f'Installed {settings.package_id} {chosen} in {props}', markup=False, soft_wrap=True
    )


@app.command('enable')
def enable(
    ctx: typer.Context,
    solution: bool = SOLUTION_OPTION,  # noqa: FBT001
    project: Path | None = PROJECT_OPTION,
) -> None:
    """Enable generation (repo-wide, --solution, or --project)."""
    _toggle(ctx, True, solution, project)


@app.command('disable')
def disable(
    ctx: typer.Context,
    solution: bool = SOLUTION_OPTION,  # noqa: FBT001
    project: Path | None = PROJECT_OPTION,
) -> None:
    """Disable generation (repo-wide, --solution, or --project)."""
    _toggle(ctx, False, solution, project)


@app.command('status')
def status(ctx: typer.Context) -> None:
    """Show install and enablement state."""
    state = _get_state(ctx)
    settings = state.settings
    console = state.console

    props = find_directory_build_props(state.project_root)
    if props is None:
        console.print('Directory.Build.props: (none)')
    else:
        try:
            text = props.read_text(encoding='utf-8-sig')
        except OSError as e:
            raise _fail(console, f'[status] error: {e}') from None
        installed = has_package_reference(text, settings.package_id)
        enabled = read_property(text, settings.enabled_property)
        console.print(f'Directory.Build.props: {props}', markup=False, soft_wrap=True)
        package = settings.package_id if installed else '(not installed)'
        console.print(f'Package: {package}', markup=False)
        default = enabled if enabled is not None else '(unset)'
        console.print(f'Repo default: {default}', markup=False)

    sln = find_solution(state.project_root)
    if sln is None:
        return
    try:
        projects = solution_projects(sln)
    except (InputError, OSError) as e:
        raise _fail(console, f'[status] error: {e}') from None
    table = Table(title=f'Solution: {escape(sln.name)}')
    table.add_column('Project', style='cyan', overflow='fold')
    table.add_column('Enabled', justify='center', no_wrap=True)
    for _, csproj in projects:
        table.add_row(escape(str(csproj)), project_enablement(csproj, settings.enabled_property))
    console.print(table)


@app.command('uninstall')
def uninstall(ctx: typer.Context) -> None:
    """Remove the build package from Directory.Build.props."""
    state = _get_state(ctx)
    props = find_directory_build_props(state.project_root)
    if props is None:
        state.console.print('Nothing to uninstall.')
        return
    try:
        remove_package_reference(props, state.settings.package_id)
    except (ET.ParseError, OSError) as e:
        raise _fail(state.console, f'[uninstall] error: {e}') from None
    state.console.print(
        f'Removed {state.settings.package_id} from {props}', markup=False, soft_wrap=True
    )


def run() -> None:
    """Entry point for the CLI script."""
    app()
