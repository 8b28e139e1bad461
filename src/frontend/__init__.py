"""Front-end glue: esprima checks and note scanning."""

from .notes import QueryBlock, find_query_blocks
from .pipeline import FrontEndResult, run_frontend

__all__ = ["FrontEndResult", "QueryBlock", "find_query_blocks", "run_frontend"]
