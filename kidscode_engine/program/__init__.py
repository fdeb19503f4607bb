"""
Program model for the block engine.
"""

from kidscode_engine.program.model import (
    Block,
    BlockId,
    OperationKind,
    Program,
    normalize_kind,
)
from kidscode_engine.program.loader import ProgramFormatError, load_program
from kidscode_engine.program.palette import (
    BlockTemplate,
    CATEGORIES,
    TEMPLATES,
    create_block,
    get_template,
)

__all__ = [
    "Block",
    "BlockId",
    "OperationKind",
    "Program",
    "normalize_kind",
    "ProgramFormatError",
    "load_program",
    "BlockTemplate",
    "CATEGORIES",
    "TEMPLATES",
    "create_block",
    "get_template",
]
