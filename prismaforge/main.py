import argparse
import glob
import os
import sys

from prismaforge.exceptions import PrismaForgeError
from prismaforge.generators.prisma import GeneratorOptions, PrismaGenerator
from prismaforge.logging_config import get_logger, setup_logging
from prismaforge.parsers.postgres import PostgresParser


def get_version() -> str:
    version_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'VERSION')
    if not os.path.exists(version_path):
        return 'Unknown'
    with open(version_path, 'r') as f:
        return f.read().strip()


def read_sql_source(path: str) -> str:
    """
    Reads SQL content from a file, recursively from a directory, or from
    stdin when path is '-'.
    """
    if path == '-':
        return sys.stdin.read()

    if os.path.isfile(path):
        with open(path, 'r') as f:
            return f.read()

    if os.path.isdir(path):
        # Sorted so concatenation order, and with it relation suffixes, is stable
        sql_files = sorted(glob.glob(os.path.join(path, '**/*.sql'), recursive=True))
        if not sql_files:
            raise PrismaForgeError(f"No .sql files found in directory: {path}")

        content = []
        for sql_file in sql_files:
            with open(sql_file, 'r') as f:
                content.append(f.read())
        return "\n".join(content)

    raise PrismaForgeError(f"Path not found: {path}")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='PrismaForge - PostgreSQL DDL to Prisma schema')
    parser.add_argument('command', choices=['convert'], help='Command to execute')
    parser.add_argument('--source', required=True, help="Path to a .sql file, a directory of .sql files, or '-' for stdin")
    parser.add_argument('--out', help='Path to write the Prisma schema (default: stdout)')

    parser.add_argument('--provider', default=GeneratorOptions.provider, help='Datasource provider (postgresql, cockroachdb)')
    parser.add_argument('--url-env', default=GeneratorOptions.url_env, help='Environment variable holding the database URL')
    parser.add_argument('--strict', action='store_true', help='Fail on the first malformed statement instead of skipping it')
    parser.add_argument('--diagnostics', action='store_true', help='Print recorded diagnostics to stderr')

    parser.add_argument('--verbose', '-v', action='count', default=0, help='Increase log verbosity (-v info, -vv debug)')
    parser.add_argument('--log-format', choices=['text', 'json'], default='text', help='Log output format')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('--version', action='version', version=f'PrismaForge v{get_version()}')
    return parser


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, log_format=args.log_format, no_color=args.no_color)
    logger = get_logger("cli")
    logger.debug(f"Command={args.command}, Source={args.source}, Provider={args.provider}")

    try:
        sql = read_sql_source(args.source)
        options = GeneratorOptions(provider=args.provider, url_env=args.url_env)
        generator = PrismaGenerator(options)

        result = PostgresParser(strict=args.strict).parse(sql)
        schema = generator.generate(result)

        if args.diagnostics:
            for diagnostic in result.diagnostics:
                print(f"{diagnostic.severity.value}: {diagnostic.message}", file=sys.stderr)

        if args.out:
            with open(args.out, 'w') as f:
                f.write(schema)
            print(f"Prisma schema saved to {args.out}")
        else:
            sys.stdout.write(schema)

    except (PrismaForgeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
