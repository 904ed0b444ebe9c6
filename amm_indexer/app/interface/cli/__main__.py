import asyncio
import inspect
import logging

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from amm_indexer.app.interface.tasks import TASKS


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for indexing AMM subgraph entities from on chain events.")
app.add_typer(indexer_app, name="indexer")

_BACKENDS = ["sqlalchemy", "memory"]


@indexer_app.command("run")
def run() -> None:
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()
    chain_id = int(
        inquirer.text(
            message="Chain ID (e.g. 1329 for Sei):",
            default="1329",
        ).execute()
    )
    from_block = inquirer.text(
        message="From block (inclusive):",
        default="earliest",
    ).execute()
    to_block = inquirer.text(
        message="To block (inclusive):",
        default="latest",
    ).execute()

    task = TASKS[task_name]

    kwargs: dict[str, object] = {"chain_id": chain_id}

    params = inspect.signature(task).parameters

    if "from_block" in params:
        kwargs["from_block"] = from_block
    if "to_block" in params:
        kwargs["to_block"] = to_block

    if "backend" in params:
        kwargs["backend"] = inquirer.select(
            message="Entity store backend:",
            choices=_BACKENDS,
            default="sqlalchemy",
            pointer="❯",
        ).execute()

    asyncio.run(task(**kwargs))  # type: ignore


@indexer_app.command("index")
def index(
    chain_id: int = typer.Option(1329, "--chain-id", help="EVM chain id with a chain registry entry."),
    from_block: str = typer.Option("earliest", "--from-block", help="First block (inclusive), or 'earliest'."),
    to_block: str = typer.Option("latest", "--to-block", help="Last block (inclusive), or 'latest'."),
    backend: str = typer.Option("sqlalchemy", "--backend", help="Entity store backend: sqlalchemy or memory."),
) -> None:
    """Non-interactive AMM subgraph indexing run."""
    if backend not in _BACKENDS:
        raise typer.BadParameter(f"expected one of {_BACKENDS}", param_hint="--backend")

    task = TASKS["domain__index_amm_subgraph_task"]
    asyncio.run(task(chain_id=chain_id, from_block=from_block, to_block=to_block, backend=backend))


if __name__ == "__main__":
    typer.echo("\n    --- AMM Subgraph Indexer CLI ---\n")
    app()
