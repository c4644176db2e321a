"""
Graph command: sort module definitions and report unmet dependencies
"""

import importlib
import json
from typing import Any, List

import typer
from rich.console import Console
from rich.table import Table

from ...core import EngineConfig, ModularError, ModuleRegistry

console = Console()


def resolve_ref(ref: str) -> List[Any]:
    """
    Resolve "package.module[:attribute]" to module definitions.

    Without an attribute the imported Python module itself is the definition.
    A list or tuple attribute contributes each of its items.
    """
    module_path, _, attr_path = ref.partition(":")
    target: Any = importlib.import_module(module_path)
    for attr in filter(None, attr_path.split(".")):
        target = getattr(target, attr)
    if isinstance(target, (list, tuple)):
        return list(target)
    return [target]


def graph_command(
    refs: List[str] = typer.Argument(..., help="Module definitions as package.module[:attribute]"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    production: bool = typer.Option(False, "--production", help="Skip module validation"),
):
    """
    Sort module definitions into fold order.

    Examples:
        modular graph myapp.modules.todo myapp.modules.filters
        modular graph myapp.modules:ALL --json
    """
    try:
        registry = ModuleRegistry(config=EngineConfig(production=production))
        for ref in refs:
            for definition in resolve_ref(ref):
                registry = registry.add_module(definition)
        engine = registry.engine
    except (ImportError, AttributeError) as e:
        if json_output:
            print(json.dumps({"error": f"Cannot load module definition: {e}"}))
        else:
            console.print(f"[red]Error: cannot load module definition:[/red] {e}")
        raise typer.Exit(2)
    except ModularError as e:
        if json_output:
            print(json.dumps({"error": str(e), "type": type(e).__name__}))
        else:
            console.print(f"[red]{type(e).__name__}:[/red] {e}")
        raise typer.Exit(2)

    if json_output:
        output = {
            "generation": registry.generation,
            "order": [str(m.provides) for m in engine.sorted_modules],
            "modules": [
                {
                    "provides": str(m.provides),
                    "depends": [str(d) for d in m.depends],
                    "api": sorted(m.api.keys()),
                }
                for m in engine.sorted_modules
            ],
            "unmet_dependencies": [str(k) for k in engine.unmet_dependencies],
        }
        print(json.dumps(output, indent=2))
        return

    table = Table(title="Fold Order")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Provides", style="green")
    table.add_column("Depends")
    table.add_column("API")

    for index, module in enumerate(engine.sorted_modules):
        table.add_row(
            str(index),
            str(module.provides),
            ", ".join(str(d) for d in module.depends) or "-",
            ", ".join(sorted(module.api.keys())) or "-",
        )

    console.print(table)

    if engine.unmet_dependencies:
        unmet = ", ".join(str(k) for k in engine.unmet_dependencies)
        console.print(f"[yellow]Unmet dependencies (must be in base state):[/yellow] {unmet}")
    else:
        console.print("[green]✓ All dependencies met[/green]")
