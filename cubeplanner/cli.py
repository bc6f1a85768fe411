"""Command-line interface for CubePlanner."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .config import Config
from .errors import CubePlannerError
from .inventory import Inventory, create_sample_inventory, load_shopping_list
from .models import MEAL_TYPE_ORDER, Plan, PlanConstraints
from .normalizer import normalize_plan
from .parser import parse_plan_response
from .planner import MealPlanner
from .shopping import ShoppingAdvisor, compute_deficit, to_markdown

console = Console()
err_console = Console(stderr=True)

DEFAULT_INVENTORY = Path("inventory.md")


def setup_logging(level: str = "INFO"):
    """Route library logging through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def load_inventory(config: Config, path: str = None) -> Inventory:
    """Load the inventory snapshot from the CLI option or INVENTORY_PATH."""
    inventory_path = Path(path) if path else (config.inventory_path or DEFAULT_INVENTORY)
    if not inventory_path.exists():
        raise click.ClickException(
            f"Inventory file not found: {inventory_path} (run `cubeplan init` to create one)"
        )
    return Inventory.load(inventory_path)


def render_plan(plan: Plan):
    """Print a plan as one table per day."""
    for day in plan.days:
        table = Table(title=f"📅 {day.date or 'Undated'}")
        table.add_column("Meal", style="cyan")
        table.add_column("Ingredients")
        table.add_column("Cubes", justify="right", style="green")
        table.add_column("Spices", style="dim")

        if not day.meals:
            table.add_row("[yellow]none[/yellow]", "No viable meal", "", "")

        meals = sorted(day.meals, key=lambda m: MEAL_TYPE_ORDER.get(m.meal_type, len(MEAL_TYPE_ORDER)))
        for meal in meals:
            table.add_row(
                (meal.meal_type or "meal").title(),
                ", ".join(f"{item.name} ×{item.cubes}" for item in meal.items),
                str(meal.total_cubes),
                ", ".join(str(s) for s in meal.spices),
            )
        console.print(table)

    if plan.dropped_meals:
        console.print(
            f"[yellow]⚠️  {plan.dropped_meals} meal(s) dropped: "
            f"not enough distinct ingredients in stock.[/yellow]"
        )


def build_constraints(config: Config, cubes, ingredients, only_inventory, avoid=()) -> PlanConstraints:
    """Merge CLI options over the configured plan defaults."""
    defaults = config.plan_defaults
    if cubes is None:
        cubes = defaults.per_meal_cubes
    return PlanConstraints(
        exact_ingredient_count=defaults.max_ingredients if ingredients is None else ingredients,
        only_inventory=only_inventory,
        target_cubes_per_meal=cubes or None,
        avoid_allergens=list(avoid) if avoid else list(defaults.avoid_allergens),
    )


@click.group()
@click.option("--env", default=None, help="Path to .env file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, env, verbose):
    """🍼 CubePlanner - baby food cube meal planning."""
    ctx.ensure_object(dict)
    config = Config.from_env(Path(env) if env else None)
    setup_logging("DEBUG" if verbose else config.log_level)
    ctx.obj["config"] = config


@cli.command()
@click.option("--days", type=int, default=None, help="Number of days to plan (default: 3)")
@click.option("--cubes", type=int, default=None, help="Target cubes per meal, 0 for no target (default: 2)")
@click.option("--ingredients", type=int, default=None, help="Exact ingredients per meal, 0 for no limit (default: 3)")
@click.option("--only-inventory/--any-ingredients", default=True, help="Restrict meals to inventory items")
@click.option("--avoid", multiple=True, help="Allergen to avoid (repeatable)")
@click.option("--inventory", "inventory_path", default=None, help="Inventory file (.md or .json)")
@click.option("--output", "-o", default=None, help="Write the plan to a markdown file")
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON")
@click.pass_context
def plan(ctx, days, cubes, ingredients, only_inventory, avoid, inventory_path, output, as_json):
    """Generate a meal plan from the freezer inventory."""
    config = ctx.obj["config"]
    inventory = load_inventory(config, inventory_path)
    constraints = build_constraints(config, cubes, ingredients, only_inventory, avoid)
    days = days or config.plan_defaults.days

    if not as_json:
        console.print(f"\n[bold blue]🍼 Generating {days}-day meal plan...[/bold blue]")
        console.print(f"{constraints.exact_ingredient_count} ingredients | "
                      f"~{constraints.target_cubes_per_meal or 0} cubes per meal | "
                      f"{inventory.total_cubes} cubes on hand\n")

    planner = MealPlanner(config)
    try:
        result = planner.generate_plan(inventory.all_items(), days=days, constraints=constraints)
    except CubePlannerError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        render_plan(result)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(planner.get_plan_summary(result))
        console.print(f"\n[green]✅ Saved meal plan to {output}[/green]")


@cli.command()
@click.argument("response_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--cubes", type=int, default=None, help="Target cubes per meal, 0 for no target (default: 2)")
@click.option("--ingredients", type=int, default=None, help="Exact ingredients per meal, 0 for no limit (default: 3)")
@click.option("--only-inventory/--any-ingredients", default=True, help="Restrict meals to inventory items")
@click.option("--inventory", "inventory_path", default=None, help="Inventory file (.md or .json)")
@click.option("--output", "-o", default=None, help="Write the repaired plan JSON to a file")
@click.pass_context
def normalize(ctx, response_file, cubes, ingredients, only_inventory, inventory_path, output):
    """Repair a saved raw model response and print the plan as JSON."""
    config = ctx.obj["config"]
    inventory = load_inventory(config, inventory_path)
    constraints = build_constraints(config, cubes, ingredients, only_inventory)

    with open(response_file, "r", encoding="utf-8") as f:
        text = f.read()

    try:
        parsed = parse_plan_response(text)
    except CubePlannerError as e:
        raise click.ClickException(str(e))

    result = normalize_plan(parsed, inventory.all_items(), constraints)
    rendered = json.dumps(result.to_dict(), indent=2)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(rendered)
    else:
        click.echo(rendered)
    if result.dropped_meals:
        err_console.print(f"[yellow]{result.dropped_meals} meal(s) dropped[/yellow]")


@cli.command()
@click.option("--days", type=float, default=None, help="Days the freezer should cover (default: 3)")
@click.option("--per-day", type=float, default=None, help="Cubes eaten per day (default: 6)")
@click.option("--inventory", "inventory_path", default=None, help="Inventory file (.md or .json)")
@click.option("--shopping-list", "shopping_list_path", default=None, help="Existing shopping list (.md or .json)")
@click.option("--avoid", multiple=True, help="Allergen to avoid (repeatable)")
@click.option("--output", "-o", default=None, help="Write suggestions to a markdown file")
@click.pass_context
def shop(ctx, days, per_day, inventory_path, shopping_list_path, avoid, output):
    """Suggest what to buy when the freezer will run short."""
    config = ctx.obj["config"]
    inventory = load_inventory(config, inventory_path)

    list_path = Path(shopping_list_path) if shopping_list_path else config.shopping_list_path
    shopping_list = load_shopping_list(list_path) if list_path and list_path.exists() else []

    defaults = config.shopping_defaults
    days = defaults.days_to_cover if days is None else days
    per_day = defaults.per_day_cubes if per_day is None else per_day
    try:
        deficit = compute_deficit(inventory.total_cubes, days, per_day)
    except ValueError as e:
        raise click.ClickException(str(e))
    console.print(Panel(
        f"On hand: {inventory.total_cubes} cubes\n"
        f"Needed: {days:g} days × {per_day:g} cubes\n"
        f"Deficit: [bold]{deficit}[/bold] cubes",
        title="🧊 Freezer Coverage",
    ))

    advisor = ShoppingAdvisor(config)
    try:
        suggestions = advisor.suggest(
            inventory.all_items(),
            days_to_cover=days,
            per_day_cubes=per_day,
            shopping_list=shopping_list,
            avoid_allergens=list(avoid) if avoid else None,
        )
    except CubePlannerError as e:
        raise click.ClickException(str(e))

    if not suggestions:
        console.print("[green]Nothing to buy - the freezer covers it.[/green]")
    else:
        table = Table(title="🛒 Suggested Items")
        table.add_column("Item", style="cyan")
        table.add_column("Qty", justify="right", style="green")
        table.add_column("Why", style="dim")
        for item in suggestions:
            table.add_row(item.name, str(item.quantity), item.reason)
        console.print(table)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(to_markdown(suggestions))
        console.print(f"[green]✅ Saved shopping list to {output}[/green]")


@cli.command()
@click.option("--inventory", "inventory_path", default=None, help="Inventory file (.md or .json)")
@click.pass_context
def inventory(ctx, inventory_path):
    """Show the freezer inventory."""
    config = ctx.obj["config"]
    snapshot = load_inventory(config, inventory_path)
    stats = snapshot.get_stats()

    console.print(Panel(
        f"[bold]Freezer Inventory[/bold]\n\n"
        f"Total items: {stats['total_items']}\n"
        f"Total cubes: {stats['total_cubes']}\n"
        f"Out of stock: {stats['out_of_stock']}",
        title="🧊 Inventory",
    ))

    for category in sorted(stats["by_category"]):
        table = Table(title=category.title())
        table.add_column("Item", style="cyan")
        table.add_column("Cubes", justify="right")
        for item in sorted(snapshot.get_by_category(category), key=lambda i: i.name):
            style = "green" if item.in_stock else "red"
            table.add_row(item.name, f"[{style}]{item.cubes_left}[/{style}]")
        console.print(table)


@cli.command()
@click.pass_context
def init(ctx):
    """Create a sample inventory file."""
    config = ctx.obj["config"]
    inventory_path = config.inventory_path or DEFAULT_INVENTORY

    console.print("[bold blue]🚀 Initializing CubePlanner[/bold blue]\n")

    if inventory_path.exists():
        console.print(f"[yellow]Inventory already exists at {inventory_path}[/yellow]")
    elif click.confirm(f"Create sample inventory at {inventory_path}?", default=True):
        inventory_path.parent.mkdir(parents=True, exist_ok=True)
        create_sample_inventory(inventory_path)
        console.print("[green]✅ Created sample inventory[/green]")

    for problem in config.validate():
        console.print(f"[yellow]Warning:[/yellow] {problem}")

    console.print("\nTry these commands:")
    console.print("  cubeplan inventory    # See what's in the freezer")
    console.print("  cubeplan plan         # Generate a meal plan")
    console.print("  cubeplan shop         # Suggest what to buy")


@cli.command()
@click.option("--host", default=None, help="Interface to bind (default: HOST or 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port to listen on (default: PORT or 8787)")
@click.option("--debug", is_flag=True, help="Run Flask in debug mode")
@click.pass_context
def serve(ctx, host, port, debug):
    """Run the HTTP API."""
    from .server import create_app

    config = ctx.obj["config"]
    for problem in config.validate():
        logging.getLogger(__name__).warning(problem)

    app = create_app(config)
    app.run(host=host or config.host, port=port or config.port, debug=debug)


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
