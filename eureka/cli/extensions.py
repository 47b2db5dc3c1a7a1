"""
Eureka CLI - Extension Commands

Commands:
    inspect - Load an extension headlessly and show its prepared blocks
"""

from __future__ import annotations

import asyncio
from typing import Any

import typer

from eureka.cli import app, console
from eureka.cli.headless import HeadlessVM
from eureka.context import EurekaContext
from eureka.errors import EurekaError
from eureka.extensions.sdk import SEPARATOR, LoadedExtensionInfo

_REMOTE_PREFIXES = ("http://", "https://", "data:")


async def load_headless(source: str, ctx: EurekaContext) -> LoadedExtensionInfo:
    """Load ``source`` (path or URL) into a headless context."""
    if source.startswith(_REMOTE_PREFIXES):
        return await ctx.loader.load(source)
    return await ctx.loader.load_file(source)


def describe_block(block: Any) -> list[str]:
    """Table row for one prepared block entry."""
    if block == SEPARATOR:
        return ["---", "", "", ""]
    block_type = block.get("blockType")
    return [
        str(block.get("opcode") or ""),
        str(getattr(block_type, "value", block_type)),
        str(block.get("text") or ""),
        ", ".join(block.get("arguments") or {}),
    ]


def _jsonable(info: dict[str, Any]) -> dict[str, Any]:
    blocks = []
    for block in info.get("blocks", []):
        if block == SEPARATOR:
            blocks.append(block)
            continue
        blocks.append({key: value for key, value in block.items() if not callable(value)})
    menus = {
        name: {"items": menu["items"] if not callable(menu["items"]) else repr(menu["items"])}
        for name, menu in info.get("menus", {}).items()
    }
    return {**info, "blocks": blocks, "menus": menus}


@app.command()
def inspect(
    source: str = typer.Argument(
        ...,
        help="Extension file path, http(s) URL or data URL.",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Print the prepared descriptor as JSON.",
    ),
    locale: str = typer.Option(
        "en",
        "--locale",
        "-l",
        help="Host locale to load the extension under.",
    ),
) -> None:
    """
    Load an extension and show its prepared descriptor.

    The extension runs against a headless host, so blocks that need a
    live editor or stage are listed but never executed.
    """
    from eureka.cli.output import print_error, print_json, print_table

    ctx = EurekaContext(HeadlessVM(locale=locale))
    try:
        loaded = asyncio.run(load_headless(source, ctx))
    except EurekaError as e:
        print_error(str(e))
        raise typer.Exit(1)

    info = loaded.info
    if as_json:
        print_json(_jsonable(info))
        return

    console.print(f"[bold]{info['name']}[/bold] ([cyan]{info['id']}[/cyan])")
    print_table(
        title="Blocks",
        columns=["Opcode", "Type", "Text", "Arguments"],
        rows=[describe_block(block) for block in info.get("blocks", [])],
        styles=["cyan", None, None, "dim"],
    )
    if info.get("menus"):
        print_table(
            title="Menus",
            columns=["Menu", "Items"],
            rows=[
                [name, repr(menu["items"]) if callable(menu["items"]) else str(menu["items"])]
                for name, menu in info["menus"].items()
            ],
            styles=["cyan"],
        )
