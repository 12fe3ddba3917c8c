import typer
from rich.table import Table
from typing import List

from ..context import AppContext
from ..domain.models import ManagedMod
from ..ui.progress import ProgressManager
from .common import console, run_with_context

app = typer.Typer()


@app.command("list")
def list_mods(profile_id: str):
    """list managed and custom plugin files in a profile."""
    mods = run_with_context(lambda ctx: ctx.mods.get_unified_mods(profile_id))

    if not mods:
        console.print("[yellow]No mods installed.[/yellow]")
        return

    table = Table(title=f"Mods in {profile_id}")
    table.add_column("Source", style="dim")
    table.add_column("Mod", style="cyan")
    table.add_column("Version", style="white")
    table.add_column("File", style="dim")

    for mod in mods:
        if isinstance(mod, ManagedMod):
            table.add_row("managed", mod.mod_id, mod.version, mod.file)
        else:
            table.add_row("custom", "", "", mod.file)

    console.print(table)


@app.command("install")
def install_mod(
    profile_id: str,
    mod_id: str,
    version: str,
    no_deps: bool = typer.Option(False, "--no-deps", help="Do not install dependencies"),
    skip: List[str] = typer.Option(None, "--skip", help="Dependency to leave out (repeatable)"),
):
    """install a mod and its dependencies into a profile."""
    progress = ProgressManager(console)

    async def action(ctx: AppContext):
        selected = None
        if no_deps:
            selected = set()
        elif skip:
            with progress.spinner(f"Resolving dependencies of {mod_id}@{version}"):
                info = await ctx.catalog.get_version_info(mod_id, version)
                resolved = await ctx.resolver.resolve(info.dependencies)
            selected = {dep.mod_id for dep in resolved if dep.mod_id not in skip}

        with progress.download_progress() as renderer:
            return await ctx.installer.install_with_dependencies(
                profile_id, mod_id, version, selected=selected, on_progress=renderer
            )

    installed = run_with_context(action)
    names = ", ".join(f"{mod.mod_id}@{mod.version}" for mod in installed)
    console.print(f"[green]Successfully installed:[/green] {names}")


@app.command("remove")
def remove_mod(profile_id: str, file: str):
    """delete a plugin file; managed mods also lose their profile entry."""
    async def action(ctx: AppContext):
        for mod in await ctx.mods.get_unified_mods(profile_id):
            if mod.file == file:
                await ctx.mods.delete_unified_mod(profile_id, mod)
                return mod
        return None

    removed = run_with_context(action)
    if removed is None:
        console.print(f"[red]Error:[/red] No plugin file named '{file}' in {profile_id}")
        raise typer.Exit(1)
    console.print(f"[green]Removed[/green] {file}")


@app.command("cleanup")
def cleanup_mods(profile_id: str):
    """drop profile entries whose plugin file no longer exists."""
    run_with_context(lambda ctx: ctx.mods.cleanup_missing_mods(profile_id))
    console.print(f"[green]Cleaned up[/green] {profile_id}")


if __name__ == "__main__":
    app()
