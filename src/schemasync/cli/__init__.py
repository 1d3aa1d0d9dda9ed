"""schemasync CLI - extract, store and regenerate model schemas.

Uses tyro for type-driven CLI generation from dataclasses.
"""

from __future__ import annotations

from typing import Annotated

import tyro

from schemasync.cli.commands.output import Export, Generate, Graph
from schemasync.cli.commands.parse import Normalize, Parse
from schemasync.cli.commands.schema import Import, List, Resync, Show

_Parse = Annotated[Parse, tyro.conf.subcommand("parse")]
_Normalize = Annotated[Normalize, tyro.conf.subcommand("normalize")]
_Import = Annotated[Import, tyro.conf.subcommand("import")]
_List = Annotated[List, tyro.conf.subcommand("list")]
_Show = Annotated[Show, tyro.conf.subcommand("show")]
_Resync = Annotated[Resync, tyro.conf.subcommand("resync")]
_Graph = Annotated[Graph, tyro.conf.subcommand("graph")]
_Generate = Annotated[Generate, tyro.conf.subcommand("generate")]
_Export = Annotated[Export, tyro.conf.subcommand("export")]

Command = (
    _Parse
    | _Normalize
    | _Import
    | _List
    | _Show
    | _Resync
    | _Graph
    | _Generate
    | _Export
)


def main() -> int:
    """Entry point for the CLI."""
    # configure structlog (respects SCHEMASYNC_DEBUG env var)
    from schemasync.logging_config import configure_logging

    configure_logging()

    try:
        cmd = tyro.cli(
            Command,
            prog="schemasync",
            description="Extract, store and regenerate data-model schemas.",
        )
        return cmd.run()
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        from schemasync import console

        console.error(str(e))
        return 1
