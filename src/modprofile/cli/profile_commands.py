import typer
from rich.table import Table
from pathlib import Path

from ..config import get_runtime_cache_path, get_runtime_url
from ..context import AppContext
from ..domain.models import IconSelection
from ..ui.progress import ProgressManager
from .common import console, format_duration, format_timestamp, run_with_context

app = typer.Typer()


@app.command("list")
def list_profiles():
    """list all profiles, most recently launched first."""
    async def action(ctx: AppContext):
        return [(p, ctx.mods.count_mods(p.path)) for p in ctx.manager.list_profiles()]

    rows = run_with_context(action)

    if not rows:
        console.print("[yellow]No profiles found.[/yellow]")
        console.print("\nCreate one with: [cyan]modprofile profile add <name>[/cyan]")
        return

    table = Table(title="Profiles")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Mods", justify="right")
    table.add_column("Play time", style="white")
    table.add_column("Last launched", style="dim")
    table.add_column("BepInEx", style="green")

    for profile, mod_count in rows:
        table.add_row(
            profile.name,
            profile.id,
            str(mod_count),
            format_duration(profile.total_play_time or 0),
            format_timestamp(profile.last_launched_at),
            "yes" if profile.bepinex_installed else "",
        )

    console.print(table)


@app.command("add")
def add_profile(name: str):
    """create a new, empty profile."""
    profile = run_with_context(lambda ctx: ctx.manager.create_profile(name))
    console.print(f"[green]Created profile[/green] [cyan]{profile.name}[/cyan] ({profile.id})")


@app.command("rename")
def rename_profile(profile_id: str, new_name: str):
    """rename a profile."""
    run_with_context(lambda ctx: ctx.manager.rename_profile(profile_id, new_name))
    console.print(f"[green]Renamed[/green] {profile_id} to [cyan]{new_name.strip()}[/cyan]")


@app.command("remove")
def remove_profile(
    profile_id: str,
    force: bool = typer.Option(False, "--force", "-f", help="Skip the confirmation prompt"),
):
    """delete a profile and everything in its directory."""
    if not force and not typer.confirm(f"Delete profile '{profile_id}' and all of its files?"):
        raise typer.Exit(code=0)

    run_with_context(lambda ctx: ctx.manager.delete_profile(profile_id))
    console.print(f"[green]Removed profile[/green] {profile_id}")


@app.command("show")
def show_profile(profile_id: str):
    """show profile details."""
    async def action(ctx: AppContext):
        return ctx.manager.get_profile(profile_id)

    profile = run_with_context(action)
    if profile is None:
        console.print(f"[red]Error:[/red] Profile '{profile_id}' not found")
        raise typer.Exit(1)

    console.print(f"\n[bold]Profile:[/bold] [cyan]{profile.name}[/cyan]")
    console.print(f"  ID:             {profile.id}")
    console.print(f"  Path:           {profile.path}")
    console.print(f"  Created:        {format_timestamp(profile.created_at)}")
    console.print(f"  Last launched:  {format_timestamp(profile.last_launched_at)}")
    console.print(f"  Play time:      {format_duration(profile.total_play_time or 0)}")
    console.print(f"  BepInEx:        {'installed' if profile.bepinex_installed else 'not installed'}")
    console.print(f"  Icon:           {profile.icon_mode}")
    console.print(f"  Mods:           {len(profile.mods)}\n")


@app.command("icon")
def set_icon(
    profile_id: str,
    mod: str = typer.Option(None, "--mod", help="Use an installed mod's icon"),
    image: Path = typer.Option(None, "--image", help="Use an image data url read from this file"),
):
    """set the profile icon; with no options the default icon is restored."""
    if mod and image:
        console.print("[red]Error:[/red] Use either --mod or --image, not both")
        raise typer.Exit(1)

    if mod:
        selection = IconSelection(mode="mod", mod_id=mod)
    elif image:
        selection = IconSelection(mode="custom", data_url=image.read_text().strip())
    else:
        selection = IconSelection(mode="default")

    run_with_context(lambda ctx: ctx.manager.update_profile_icon(profile_id, selection))
    console.print(f"[green]Updated icon for[/green] {profile_id}")


@app.command("export")
def export_profile(profile_id: str, destination: Path):
    """export a profile directory as a zip archive."""
    async def action(ctx: AppContext):
        return ctx.manager.export_profile_zip(profile_id, destination)

    path = run_with_context(action)
    console.print(f"[green]Exported[/green] {profile_id} to {path}")


@app.command("import")
def import_profile(archive: Path):
    """create a new profile from an exported zip archive."""
    profile = run_with_context(lambda ctx: ctx.manager.import_profile_zip(archive))
    console.print(f"[green]Imported profile[/green] [cyan]{profile.name}[/cyan] ({profile.id})")


@app.command("bepinex")
def install_bepinex(
    profile_id: str,
    url: str = typer.Option(None, "--url", help="Runtime archive to install"),
):
    """install the BepInEx runtime into a profile."""
    progress = ProgressManager(console)

    async def action(ctx: AppContext):
        with progress.install_progress("Installing BepInEx") as on_event:
            await ctx.manager.install_runtime(
                profile_id,
                url or get_runtime_url(),
                cache_path=get_runtime_cache_path(),
                on_progress=on_event,
            )

    run_with_context(action)
    console.print(f"[green]BepInEx installed into[/green] {profile_id}")


if __name__ == "__main__":
    app()
