"""Integration tests for the typediagram CLI."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from typediagram import __version__
from typediagram.cli import EXIT_DRIFT, EXIT_EMIT_FAILED, EXIT_FAILURE, app

runner = CliRunner()

PROJECT = '<Project Sdk="Microsoft.NET.Sdk">\n</Project>\n'

SOURCE = """
namespace Acme.App
{
    public interface IGreeter { }

    public class Greeter : IGreeter { }
}
"""

SLN = """
Microsoft Visual Studio Solution File, Format Version 12.00
Project("{9A19103F-16F7-4668-BE54-9A1E7A4F7556}") = "App", "App\\App.csproj", "{11111111-1111-1111-1111-111111111111}"
EndProject
"""


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A one-project solution with a single source file."""
    project_dir = tmp_path / 'App'
    project_dir.mkdir()
    (project_dir / 'App.csproj').write_text(PROJECT, encoding='utf-8')
    (project_dir / 'Greeter.cs').write_text(SOURCE, encoding='utf-8')
    (tmp_path / 'Acme.sln').write_text(SLN, encoding='utf-8')
    return tmp_path


def _invoke(root: Path, *args: str):
    return runner.invoke(app, ['--root', str(root), *args], env={'NO_COLOR': '1'})


def test_cli_version_flag_shows_version() -> None:
    """Version flag should display the version and exit."""
    result = runner.invoke(app, ['--version'], env={'NO_COLOR': '1'})
    assert result.exit_code == 0
    assert f'typediagram version {__version__}' in result.stdout


def test_cli_without_command_prints_hint() -> None:
    """Running without a command prints a hint."""
    result = runner.invoke(app, [], env={'NO_COLOR': '1'})
    assert result.exit_code == 0
    assert 'No command specified' in result.stdout


def test_cli_emit_writes_then_reports_unchanged(repo: Path) -> None:
    """Emit writes the diagram once and leaves it alone afterwards."""
    solution = repo / 'Acme.sln'
    target = (repo / 'Acme.mmd').resolve()

    first = _invoke(repo, 'emit', str(solution))
    assert first.exit_code == 0, first.stdout
    assert f'wrote: {target}' in first.stdout
    assert target.read_text(encoding='utf-8') == (
        'classDiagram\n'
        'direction LR\n'
        'namespace Acme.App {\n'
        '  class Acme.App::Greeter\n'
        '  class Acme.App::IGreeter <<Interface>>\n'
        '}\n'
        'Acme.App::Greeter ..|> Acme.App::IGreeter\n'
    )

    mtime = target.stat().st_mtime_ns
    second = _invoke(repo, 'emit', str(solution))
    assert second.exit_code == 0, second.stdout
    assert f'unchanged: {target}' in second.stdout
    assert target.stat().st_mtime_ns == mtime


def test_cli_emit_options_override_settings(repo: Path) -> None:
    """Command-line options win over the settings file."""
    (repo / '.typediagram.yaml').write_text(
        'direction: TB\noutput: docs/types.mmd\n', encoding='utf-8'
    )
    project = repo / 'App' / 'App.csproj'

    from_settings = _invoke(repo, 'emit', str(project))
    assert from_settings.exit_code == 0, from_settings.stdout
    configured = repo / 'docs' / 'types.mmd'
    assert 'direction TB\n' in configured.read_text(encoding='utf-8')

    out = repo / 'explicit.mmd'
    result = _invoke(repo, 'emit', str(project), '--out', str(out), '--direction', 'RL')
    assert result.exit_code == 0, result.stdout
    assert 'direction RL\n' in out.read_text(encoding='utf-8')


def test_cli_emit_rejects_unknown_descriptor(repo: Path) -> None:
    """Emit failures exit with the emit error code."""
    bogus = repo / 'notes.txt'
    bogus.write_text('', encoding='utf-8')
    result = _invoke(repo, 'emit', str(bogus))
    assert result.exit_code == EXIT_EMIT_FAILED
    assert '[emit] error: Path must be a .sln, .slnx or .csproj' in result.stdout


def test_cli_emit_missing_project_in_solution(repo: Path) -> None:
    """A solution entry without its project aborts the run."""
    (repo / 'App' / 'App.csproj').unlink()
    result = _invoke(repo, 'emit', str(repo / 'Acme.sln'))
    assert result.exit_code == EXIT_EMIT_FAILED
    assert not (repo / 'Acme.mmd').exists()


def test_cli_drift_check_workflow(repo: Path) -> None:
    """A regenerated diagram matches until the code changes."""
    solution = repo / 'Acme.sln'
    committed = repo / 'committed.mmd'
    fresh = repo / 'fresh.mmd'

    assert _invoke(repo, 'emit', str(solution), '-o', str(committed)).exit_code == 0
    assert _invoke(repo, 'emit', str(solution), '-o', str(fresh)).exit_code == 0
    same = _invoke(repo, 'diff', str(committed), str(fresh))
    assert same.exit_code == 0
    assert 'No drift.' in same.stdout

    (repo / 'App' / 'Audit.cs').write_text(
        'namespace Acme.App { public sealed class Audit { } }\n', encoding='utf-8'
    )
    assert _invoke(repo, 'emit', str(solution), '-o', str(fresh)).exit_code == 0
    drift = _invoke(repo, 'diff', str(committed), str(fresh))
    assert drift.exit_code == EXIT_DRIFT
    assert 'Drift detected.' in drift.stdout


def test_cli_diff_requires_both_files(repo: Path) -> None:
    """Missing inputs exit with the generic failure code."""
    present = repo / 'a.mmd'
    present.write_text('classDiagram\n', encoding='utf-8')
    result = _invoke(repo, 'diff', str(present), str(repo / 'missing.mmd'))
    assert result.exit_code == EXIT_FAILURE
    assert 'Both files must exist.' in result.stdout


def test_cli_install_status_uninstall(repo: Path) -> None:
    """Install references the package; uninstall removes it again."""
    installed = _invoke(repo, 'install', '--version', '2.0.0')
    assert installed.exit_code == 0, installed.stdout
    assert 'Installed TypeDiagram.Build 2.0.0' in installed.stdout

    props = repo / 'Directory.Build.props'
    text = props.read_text(encoding='utf-8')
    assert 'Include="TypeDiagram.Build"' in text
    assert 'Version="2.0.0"' in text
    assert '<TypeDiagramEnabled>true</TypeDiagramEnabled>' in text

    status = _invoke(repo, 'status')
    assert status.exit_code == 0, status.stdout
    assert 'Package: TypeDiagram.Build' in status.stdout
    assert 'Repo default: true' in status.stdout
    assert '(inherits)' in status.stdout

    removed = _invoke(repo, 'uninstall')
    assert removed.exit_code == 0, removed.stdout
    assert 'Removed TypeDiagram.Build' in removed.stdout
    assert 'Include="TypeDiagram.Build"' not in props.read_text(encoding='utf-8')


def test_cli_install_defaults_to_configured_version(repo: Path) -> None:
    """Without --version the configured package version is used."""
    result = _invoke(repo, 'install')
    assert result.exit_code == 0, result.stdout
    assert 'Version="1.1.0"' in (repo / 'Directory.Build.props').read_text(encoding='utf-8')


def test_cli_status_and_uninstall_without_props(repo: Path) -> None:
    """Status and uninstall cope with a repo that was never set up."""
    status = _invoke(repo, 'status')
    assert status.exit_code == 0, status.stdout
    assert 'Directory.Build.props: (none)' in status.stdout

    removed = _invoke(repo, 'uninstall')
    assert removed.exit_code == 0
    assert 'Nothing to uninstall.' in removed.stdout


def test_cli_enable_disable_scopes(repo: Path) -> None:
    """Toggles apply repo-wide, per solution or per project."""
    enabled = _invoke(repo, 'enable')
    assert enabled.exit_code == 0, enabled.stdout
    assert 'Repo default set to ENABLED' in enabled.stdout

    project = repo / 'App' / 'App.csproj'
    disabled = _invoke(repo, 'disable', '--project', str(project))
    assert disabled.exit_code == 0, disabled.stdout
    assert '<TypeDiagramEnabled>false</TypeDiagramEnabled>' in project.read_text(
        encoding='utf-8'
    )

    solution_wide = _invoke(repo, 'enable', '--solution')
    assert solution_wide.exit_code == 0, solution_wide.stdout
    assert '<TypeDiagramEnabled>true</TypeDiagramEnabled>' in project.read_text(encoding='utf-8')


def test_cli_enable_solution_requires_sln(tmp_path: Path) -> None:
    """Solution scope fails when the root holds no solution."""
    result = _invoke(tmp_path, 'enable', '--solution')
    assert result.exit_code == EXIT_FAILURE
    assert 'No .sln found in current directory.' in result.stdout


def test_cli_rejects_invalid_settings(tmp_path: Path) -> None:
    """A malformed settings file stops every command."""
    (tmp_path / '.typediagram.yaml').write_text('- not\n- a mapping\n', encoding='utf-8')
    result = _invoke(tmp_path, 'status')
    assert result.exit_code == EXIT_FAILURE
    assert 'must contain a mapping' in result.stdout


def test_cli_status_reports_unreadable_props(
    repo: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """An unreadable props file is reported instead of crashing."""
    props = repo / 'Directory.Build.props'
    props.write_text('<Project />\n', encoding='utf-8')
    original = Path.read_text

    def read_text(self: Path, *args, **kwargs) -> str:
        if self.name == 'Directory.Build.props':
            msg = 'Permission denied'
            raise PermissionError(msg)
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Path, 'read_text', read_text)
    result = _invoke(repo, 'status')
    assert result.exit_code == EXIT_FAILURE
    assert '[status] error: Permission denied' in result.stdout
