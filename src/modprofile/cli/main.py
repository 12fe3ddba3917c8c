import typer

from ..config import get_catalog_url, get_data_dir, get_runtime_url, set_catalog_url
from .common import configure_logging, console
from .mod_commands import app as mod_app
from .profile_commands import app as profile_app

app = typer.Typer()

app.add_typer(profile_app, name="profile", help="Manage game profiles")
app.add_typer(mod_app, name="mod", help="Manage mods inside a profile")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """manage BepInEx mod profiles."""
    configure_logging(verbose)


@app.command()
def config(catalog_url: str = typer.Option(None, "--catalog-url", help="Set the mod catalog base url")):
    """show or update configuration."""
    if catalog_url:
        set_catalog_url(catalog_url)
        console.print(f"[green]Catalog url set to[/green] {catalog_url}")
        return

    console.print(f"  Catalog:   {get_catalog_url()}")
    console.print(f"  Runtime:   {get_runtime_url()}")
    console.print(f"  Data dir:  {get_data_dir()}")


if __name__ == "__main__":
    app()
