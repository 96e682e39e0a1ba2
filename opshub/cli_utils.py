"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import sys
from functools import wraps

import click

from .config import configure_logging, load_config, logger
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)
from .format_utils import FORMATS, format_output, get_format_from_env
from .registries import Workspace, resolve_workspace


def standard_command(func):
    """
    Decorator that provides standard CLI behavior:
    - The command's return value (an int, or None for 0) is the exit code
    - --verbose lowers the log level to DEBUG
    - Consistent error handling: CommandError exits with its own code,
      other exceptions map through get_exit_code_for_exception
    - Ctrl+C exits 130
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        output_format = kwargs.get('format')
        try:
            code = func(*args, **kwargs)
            sys.exit(SUCCESS if code is None else code)
        except KeyboardInterrupt:
            logger.error("Interrupted by user")
            sys.exit(INTERRUPTED)
        except click.ClickException:
            raise
        except CommandError as e:
            logger.error(str(e))
            if output_format in FORMATS:
                error_obj = {
                    "error": str(e),
                    "type": type(e).__name__,
                    "exit_code": e.exit_code
                }
                if hasattr(e, 'succeeded'):
                    error_obj['succeeded'] = e.succeeded
                    error_obj['failed'] = e.failed
                print(json.dumps(error_obj, ensure_ascii=False), flush=True)
            sys.exit(e.exit_code)
        except Exception as e:
            logger.error(f"Command failed: {e}")
            logger.debug("Traceback:", exc_info=True)
            sys.exit(get_exit_code_for_exception(e))

    return wrapper


def get_workspace(ctx: click.Context, verbose: bool = False):
    """Load settings and resolve the workspace from the global CLI options.

    Returns:
        Tuple of (config, Workspace)
    """
    obj = ctx.find_root().obj or {}
    config = load_config()
    configure_logging(config, verbose=verbose)
    workspace: Workspace = resolve_workspace(config, obj.get('ops_dir'), obj.get('workspace_root'))
    logger.debug(f"Ops directory: {workspace.ops_dir}, workspace root: {workspace.root}")
    return config, workspace


def emit(items, output_format: str) -> None:
    """Print dictionaries in a machine-readable format."""
    for line in format_output(iter(items), output_format):
        print(line, flush=True)


def resolve_format(output_format):
    return output_format or get_format_from_env('table')


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                           help='Show details and debug logging'),
    'dry_run': click.option('--dry-run', is_flag=True,
                           help='Preview changes without writing anything'),
    'format': click.option('-f', '--format',
                         type=click.Choice(['table', 'json', 'jsonl', 'yaml']),
                         help='Output format (default: table, or from OPSHUB_FORMAT env)'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'dry_run')
        def my_command(verbose, dry_run):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
