from typing import Optional

from prismaforge.exceptions import GenerationError, PrismaForgeError, StrictModeError
from prismaforge.generators.prisma import GeneratorOptions, PrismaGenerator
from prismaforge.parsers.postgres import PostgresParser


def convert(sql: str, options: Optional[GeneratorOptions] = None) -> str:
    """Parses PostgreSQL DDL and returns the equivalent Prisma schema text."""
    return PrismaGenerator(options).generate(PostgresParser().parse(sql))


__all__ = [
    "convert",
    "GeneratorOptions",
    "PostgresParser",
    "PrismaGenerator",
    "PrismaForgeError",
    "StrictModeError",
    "GenerationError",
]
