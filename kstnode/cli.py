#!/usr/bin/env python3
"""
KST Node Command Line Interface

Usage:
    kstnode address <secret>
    kstnode validate address <value> [--v2-only]
    kstnode validate addresses <value>
    kstnode validate name <value> [--fetching]
    kstnode validate record <value>
    kstnode strip-suffix <name>
    kstnode work get
    kstnode work set <value> [--clamp]
    kstnode work history [--limit=<n>]
    kstnode work sample
    kstnode mining status|enable|disable
    kstnode motd get
    kstnode motd set <text>
    kstnode status
    kstnode serve [--mine]

State commands use --store (or KSTNODE_STORE_URL / REDIS_URL), e.g.
    kstnode --store file:///var/lib/kstnode/state.json work get
"""

import sys
import json
import logging
import argparse

from kstnode import config
from kstnode.addresses import make_v2_address
from kstnode.validation import (
    is_valid_address, is_valid_address_list, is_valid_name,
    is_valid_a_record, strip_name_suffix,
)
from kstnode.store import StoreError, open_store
from kstnode.work import WorkState
from kstnode.mining import MiningGate
from kstnode.motd import MOTDStore
from kstnode.node import NodeConfig, NodeCore, setup_logging


def _node_config(args) -> NodeConfig:
    node_config = NodeConfig.from_env()
    if args.store:
        node_config.store_url = args.store
    if args.log_file:
        node_config.log_file = args.log_file
    node_config.log_level = logging.DEBUG if args.verbose else logging.WARNING
    return node_config


def cmd_address(args):
    """Derive the address for a secret."""
    print(make_v2_address(args.secret))
    return 0


def cmd_validate(args):
    """Validate a value; exit code 0 if valid, 1 if not."""
    kind = args.kind
    if kind == 'address':
        valid = is_valid_address(args.value, v2_only=args.v2_only)
    elif kind == 'addresses':
        valid = is_valid_address_list(args.value)
    elif kind == 'name':
        valid = is_valid_name(args.value, fetching=args.fetching)
    else:
        valid = is_valid_a_record(args.value)

    print("valid" if valid else "invalid")
    return 0 if valid else 1


def cmd_strip_suffix(args):
    print(strip_name_suffix(args.name))
    return 0


def cmd_work(args, store):
    """Work commands."""
    work = WorkState(store)
    action = args.work_cmd or 'get'

    if action == 'get':
        print(work.get_work())
    elif action == 'set':
        value = work.clamp(args.value) if args.clamp else args.value
        work.set_work(value)
        print(f"Work set to {value}")
    elif action == 'history':
        print(json.dumps(work.get_work_over_time(args.limit)))
    elif action == 'sample':
        print(f"Sampled work {work.sample()}")
    return 0


def cmd_mining(args, store):
    """Mining gate commands."""
    gate = MiningGate(store)
    action = args.mining_cmd or 'status'

    if action == 'enable':
        gate.set_enabled(True)
    elif action == 'disable':
        gate.set_enabled(False)
    print(f"Mining is {'enabled' if gate.is_enabled() else 'disabled'}")
    return 0


def cmd_motd(args, store, environment):
    """Message of the day commands."""
    motd = MOTDStore(store, environment)
    if args.motd_cmd == 'set':
        motd.set(args.text)
    print(json.dumps(motd.get(), indent=2))
    return 0


def cmd_status(node_config):
    node = NodeCore(node_config)
    try:
        node.init()
        print(json.dumps(node.status(), indent=2))
    finally:
        node.store.close()
    return 0


def cmd_serve(args, node_config):
    if args.mine:
        node_config.mining_enabled = True
    if node_config.log_level > logging.INFO:
        node_config.log_level = logging.INFO
    setup_logging(node_config.log_file, node_config.log_level)
    NodeCore(node_config).run_forever()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='KST node identity and network state tools',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--store', type=str, default=None,
                        help='Store URL (memory://, file:///path.json, redis://host:6379/0)')
    parser.add_argument('--log-file', type=str, default=None, help='Log file path')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    address_parser = subparsers.add_parser('address', help='Derive an address from a secret')
    address_parser.add_argument('secret', help='Private key or other secret')

    validate_parser = subparsers.add_parser('validate', help='Check address/name syntax')
    validate_parser.add_argument('kind', choices=['address', 'addresses', 'name', 'record'])
    validate_parser.add_argument('value')
    validate_parser.add_argument('--v2-only', action='store_true',
                                 help='Reject legacy hex addresses')
    validate_parser.add_argument('--fetching', action='store_true',
                                 help='Allow an xn-- prefix on names')

    strip_parser = subparsers.add_parser('strip-suffix', help=f'Remove {config.NAME_SUFFIX} from a name')
    strip_parser.add_argument('name')

    work_parser = subparsers.add_parser('work', help='Work commands')
    work_sub = work_parser.add_subparsers(dest='work_cmd')
    work_sub.add_parser('get', help='Show current work')
    set_parser = work_sub.add_parser('set', help='Set current work')
    set_parser.add_argument('value', type=int)
    set_parser.add_argument('--clamp', action='store_true',
                            help=f'Bound to [{config.MIN_WORK}, {config.MAX_WORK}]')
    history_parser = work_sub.add_parser('history', help='Show work history (newest first)')
    history_parser.add_argument('--limit', '-n', type=int, default=None)
    work_sub.add_parser('sample', help='Record the current work in the history')

    mining_parser = subparsers.add_parser('mining', help='Mining gate commands')
    mining_parser.add_argument('mining_cmd', nargs='?', choices=['status', 'enable', 'disable'])

    motd_parser = subparsers.add_parser('motd', help='Message of the day')
    motd_sub = motd_parser.add_subparsers(dest='motd_cmd')
    motd_sub.add_parser('get', help='Show the message of the day')
    motd_set_parser = motd_sub.add_parser('set', help='Set the message of the day')
    motd_set_parser.add_argument('text')

    subparsers.add_parser('status', help='Initialise the store if needed and show node status')

    serve_parser = subparsers.add_parser('serve', help='Run the node with its background tasks')
    serve_parser.add_argument('--mine', action='store_true', help='Force mining on')

    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'address':
        return cmd_address(args)
    elif args.command == 'validate':
        return cmd_validate(args)
    elif args.command == 'strip-suffix':
        return cmd_strip_suffix(args)
    elif args.command is None:
        parser.print_help()
        return 0

    node_config = _node_config(args)
    setup_logging(node_config.log_file, node_config.log_level)

    try:
        if args.command == 'status':
            return cmd_status(node_config)
        elif args.command == 'serve':
            return cmd_serve(args, node_config)

        store = open_store(node_config.store_url)
        try:
            if args.command == 'work':
                return cmd_work(args, store)
            elif args.command == 'mining':
                return cmd_mining(args, store)
            elif args.command == 'motd':
                return cmd_motd(args, store, node_config.environment)
        finally:
            store.close()
    except (StoreError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
