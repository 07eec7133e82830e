#!/usr/bin/env python3
"""specwright CLI entrypoint."""

import argparse
import logging
import os
import sys
from pathlib import Path

from specwright.lib.config import load_workflow_config
from specwright.lib.types import PhaseStatus
from specwright.commands import phase as cmd_phase_module
from specwright.commands import status as cmd_status_module
from specwright.commands import validate as cmd_validate_module
from specwright.commands import watch as cmd_watch_module

DEBUG_ENV = "SPECWRIGHT_DEBUG"


def configure_logging() -> None:
    """DEBUG when SPECWRIGHT_DEBUG=true, otherwise warnings and errors only."""
    debug = os.environ.get(DEBUG_ENV, "").lower() == "true"
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_config(args):
    return load_workflow_config(Path(args.outputs_dir) if args.outputs_dir else None)


def cmd_status(args):
    return cmd_status_module.cmd_status(args, get_config(args))


def cmd_start(args):
    return cmd_phase_module.cmd_start(args, get_config(args))


def cmd_complete(args):
    return cmd_phase_module.cmd_complete(args, get_config(args))


def cmd_advance(args):
    return cmd_phase_module.cmd_advance(args, get_config(args))


def cmd_set(args):
    return cmd_phase_module.cmd_set(args, get_config(args))


def cmd_validate(args):
    return cmd_validate_module.cmd_validate(args, get_config(args))


def cmd_drift(args):
    return cmd_validate_module.cmd_drift(args, get_config(args))


def cmd_watch(args):
    return cmd_watch_module.cmd_watch(args, get_config(args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='specwright', description='SpecWright workflow CLI')
    parser.add_argument('--outputs-dir', '-o', help='Outputs directory (default: $SPECWRIGHT_OUTPUT_DIR or ./specwright/outputs)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # specwright status
    p_status = subparsers.add_parser('status', help='Show project phase status')
    p_status.add_argument('project_id', help='Project ID')
    p_status.set_defaults(func=cmd_status)

    # specwright start
    p_start = subparsers.add_parser('start', help='Mark AI work started on the current phase')
    p_start.add_argument('project_id', help='Project ID')
    p_start.set_defaults(func=cmd_start)

    # specwright complete
    p_complete = subparsers.add_parser('complete', help='Complete a phase and advance')
    p_complete.add_argument('project_id', help='Project ID')
    p_complete.add_argument('--agent', help='Agent owning the phase (pm, ux, engineer)')
    p_complete.add_argument('--phase', help='Phase name (default: current phase)')
    p_complete.set_defaults(func=cmd_complete)

    # specwright advance
    p_advance = subparsers.add_parser('advance', help='Advance past the current phase if complete')
    p_advance.add_argument('project_id', help='Project ID')
    p_advance.set_defaults(func=cmd_advance)

    # specwright set
    p_set = subparsers.add_parser('set', help='Set one phase status')
    p_set.add_argument('project_id', help='Project ID')
    p_set.add_argument('agent', help='Agent (pm, ux, engineer)')
    p_set.add_argument('phase', help='Phase name, e.g. questions-answer')
    p_set.add_argument('status', choices=[s.value for s in PhaseStatus], help='New status')
    p_set.set_defaults(func=cmd_set)

    # specwright validate
    p_validate = subparsers.add_parser('validate', help='Check current phase artifacts')
    p_validate.add_argument('project_id', help='Project ID')
    p_validate.add_argument('--recover', action='store_true', help='Roll back to the producing phase if invalid')
    p_validate.set_defaults(func=cmd_validate)

    # specwright drift
    p_drift = subparsers.add_parser('drift', help='Report completed phases with missing outputs')
    p_drift.add_argument('project_id', help='Project ID')
    p_drift.set_defaults(func=cmd_drift)

    # specwright watch
    p_watch = subparsers.add_parser('watch', help='Wait for a file to finish being written')
    p_watch.add_argument('path', help='File to watch')
    p_watch.add_argument('--timeout', '-t', type=float, help='Seconds to wait (default from config)')
    p_watch.add_argument('--wait-for-change', action='store_true', help='Require a change even if the file is already valid')
    p_watch.set_defaults(func=cmd_watch)

    return parser


def main(argv=None):
    configure_logging()
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
