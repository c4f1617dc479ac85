"""Plan command - diff declarations against a local state file."""

import json as jsonlib
import sys
from pathlib import Path
import click
from ...orchestrator import Orchestrator
from ...presentation.formatter import format_plan
from ...provider.memory import InMemoryProvider
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import format_error, load_inputs, open_state

logger = get_logger("cli.plan")


@click.command()
@click.argument('declarations_file', type=click.Path(exists=False))
@click.option('--state', 'state_path', type=click.Path(), help='Local JSON state file (default: empty state)')
@click.option('--config', 'config_path', type=click.Path(), help='Extra config file merged over the defaults')
@click.option('--json', is_flag=True, help='Output the plan as JSON instead of human-readable text')
@click.option('--output', '-o', type=click.Path(), help='Save output to file')
@click.option('--detailed-exitcode', is_flag=True, help='Exit with 2 when the plan has changes')
def plan(declarations_file, state_path, config_path, json, output, detailed_exitcode):
    """
    Show what converging the declarations would change.

    Planning reads the recorded state only; no provider is queried.
    """
    try:
        declarations, config = load_inputs(declarations_file, config_path)
        store = open_state(state_path)
        orchestrator = Orchestrator(InMemoryProvider(), store, config)
        result = orchestrator.plan(declarations, refresh=False)

        if json:
            output_text = jsonlib.dumps(result.model_dump(mode="json"), indent=2, sort_keys=True, default=str)
        else:
            output_text = format_plan(result)

        if output:
            output_path = Path(output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(output_text)
            click.echo(f"Plan saved to: {output_path}", err=True)
        else:
            click.echo(output_text)
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Planning failed: {e}"), err=True)
        sys.exit(1)

    if detailed_exitcode and result.has_changes:
        sys.exit(2)
