# /// script
# dependencies = [
#     "pydantic>=2.0",
#     "syncwell",
#     "rich",
# ]
# ///

import asyncio
from typing import Annotated

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from syncwell import (
    MemoryStore,
    SyncedField,
    SyncedModel,
    connect,
    current_transaction,
    transactional,
)

console = Console()


def show_step(title: str, code: str):
    """Utility to display a code snippet and its title."""
    console.print(f"\n[bold blue]>>> {title}[/bold blue]")
    syntax = Syntax(code, "python", theme="monokai", line_numbers=False)
    console.print(Panel(syntax, expand=False, border_style="dim"))


class MyThing(SyncedModel):
    name: Annotated[str | None, SyncedField()]
    age: Annotated[int | None, SyncedField()]

    @transactional
    async def do_work(self):
        txn = current_transaction()
        console.print(f"  current name [cyan]{await self.name.read()}[/cyan] in txn {txn.id}")
        self.name.write("John")
        console.print(f"  new name [cyan]{await self.name.read()}[/cyan] in txn {txn.id}")

    @transactional
    async def read_value(self):
        txn = current_transaction()
        value = await self.name.read()
        console.print(f"  current name [cyan]{value}[/cyan] in txn {txn.id}")
        return value

    @transactional
    async def more_work(self):
        txn = current_transaction()
        console.print(f"  current name [cyan]{await self.name.read()}[/cyan] in txn {txn.id}")
        self.name.write("Jane")
        console.print(f"  new name [cyan]{await self.name.read()}[/cyan] in txn {txn.id}")
        raise RuntimeError("oops")


async def run_demo():
    console.print(
        Panel.fit(
            "[bold green]syncwell transactional sync demo[/bold green]",
            border_style="bold green",
        )
    )
    store = await connect(MemoryStore())

    show_step("Commit on success", "thing = MyThing()\nawait thing.do_work()")
    thing = MyThing()
    await thing.do_work()
    await thing.read_value()
    console.print(f"  store: {store.snapshot()}")

    show_step("Fresh instance reads the committed value", "await MyThing().read_value()")
    await MyThing().read_value()

    show_step("Failure keeps writes buffered", "await MyThing().more_work()")
    thing = MyThing()
    try:
        await thing.more_work()
    except RuntimeError as e:
        console.print(f"  [yellow](expected) error:[/yellow] {e}")
    console.print(f"  still pending: {[(w.key, w.value) for w in thing.pending_writes]}")

    show_step("Store is unchanged", "await MyThing().read_value()")
    await MyThing().read_value()
    console.print(f"  store: {store.snapshot()}")


if __name__ == "__main__":
    asyncio.run(run_demo())
