import sys
from pathlib import Path
from typing import Optional

import typer

from jrewrap.bundle.assembler import assemble_bundle
from jrewrap.bundle.profile import builtin_profiles
from jrewrap.config import BundleConfig
from jrewrap.errors import JrewrapError
from jrewrap.logger import setup_logger


app = typer.Typer(
    name="jrewrap",
    help="jrewrap: bundle a JVM application with a minimized runtime and a native launcher",
    add_completion=False,
)

@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log warnings and errors",
    ),
):

    setup_logger(verbose=verbose, quiet=quiet)

@app.command()
def build(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="JSON configuration file; command-line options override its values",
    ),
    platform: Optional[str] = typer.Option(
        None, "--platform", "-p", help="windows-x64, linux-x64 or macos"
    ),
    jdk: Optional[str] = typer.Option(
        None, "--jdk", help="Runtime directory, archive or http(s) URL"
    ),
    executable: Optional[str] = typer.Option(
        None, "--executable", "-e", help="Name of the native launcher"
    ),
    classpath: Optional[list[Path]] = typer.Option(
        None, "--classpath", help="Classpath entry (repeatable)"
    ),
    main_class: Optional[str] = typer.Option(
        None, "--main-class", "-m", help="Fully qualified main class"
    ),
    vm_args: Optional[list[str]] = typer.Option(
        None, "--vm-args", help="VM argument (repeatable), leading '-' optional"
    ),
    resources: Optional[list[Path]] = typer.Option(
        None, "--resources", "-r", help="Extra file or directory (repeatable)"
    ),
    minimize: Optional[str] = typer.Option(
        None, "--minimize", help="Minimization profile name or JSON file"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory"
    ),
    cache_jre: Optional[Path] = typer.Option(
        None, "--cache-jre", help="Directory caching the minimized runtime"
    ),
    icon: Optional[Path] = typer.Option(
        None, "--icon", help="Bundle icon (macOS)"
    ),
    bundle: Optional[str] = typer.Option(
        None, "--bundle", help="Bundle identifier (macOS)"
    ),
    keep_library: Optional[list[str]] = typer.Option(
        None, "--keep-library", help="Glob of native libraries to always keep (repeatable)"
    ),
    launcher_dir: Optional[Path] = typer.Option(
        None,
        "--launcher-dir",
        envvar="JREWRAP_LAUNCHER_DIR",
        file_okay=False,
        help="Directory with the pre-built launcher binaries",
    ),
):

    values = {
        "platform": platform,
        "jdk": jdk,
        "executable": executable,
        "classpath": classpath or None,
        "main_class": main_class,
        "vm_args": vm_args or None,
        "resources": resources or None,
        "minimize": minimize,
        "output": output,
        "cache_jre": cache_jre,
        "icon": icon,
        "bundle_identifier": bundle,
        "keep_libraries": keep_library or None,
        "launcher_dir": launcher_dir,
    }

    try:
        if config_file is not None:
            config = BundleConfig.from_json_file(config_file, **values)
        else:
            config = BundleConfig.build(**{k: v for k, v in values.items() if v is not None})

        typer.echo(f"Building {config.platform.value} bundle in '{config.output}'")
        result = assemble_bundle(config)

        if result.runtime.from_cache:
            typer.echo(" - runtime copied from cache")
        else:
            stats = result.runtime.stats
            typer.echo(
                " - runtime minimized: "
                f"{stats.archives_rewritten} archives rewritten, "
                f"{stats.files_removed} files and {stats.directories_removed} directories removed"
            )
        if result.libraries_removed:
            typer.echo(f" - removed {result.libraries_removed} foreign native libraries")

        typer.echo("Build complete!")
        typer.echo(f"Launcher: {result.launcher}")

    except JrewrapError as exc:
        where = f" ({exc.stage})" if exc.stage else ""
        typer.secho(f"Error{where}: {exc}", fg=typer.colors.RED, err=True)
        sys.exit(exc.exit_code)


@app.command()
def profiles():
    """List the built-in minimization profiles."""
    for name in builtin_profiles():
        typer.echo(name)


def run_cli() -> None:
    app()


if __name__ == "__main__":
    run_cli()
