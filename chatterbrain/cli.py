#!/usr/bin/env python3
"""
chatterbrain CLI
================
Command-line interface for training and talking to a Markov chain brain.

Usage:
    chatterbrain train corpus.txt
    chatterbrain reply --seed gorillas -n 3
    chatterbrain seed "what do you know about gorillas"
    chatterbrain stats
    chatterbrain chat
"""

import argparse
import json
import logging
import random
import sys

from chatterbrain import __version__

logger = logging.getLogger(__name__)

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
QUIT_COMMANDS = ('!quit', '!exit')

# =============================================================================
# Utilities
# =============================================================================

class Output:
    """Handles CLI output with quiet mode support."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet

    def print(self, *args, **kwargs):
        if not self.quiet:
            print(*args, **kwargs)

    def result(self, *args, **kwargs):
        """Print command results; shown even in quiet mode."""
        print(*args, **kwargs)

    def error(self, msg: str):
        print(f"Error: {msg}", file=sys.stderr)

    def success(self, msg: str):
        if not self.quiet:
            print(f"OK: {msg}")


def configure_logging(level: str = None):
    from chatterbrain.settings import get_setting

    level = level or get_setting("logging.level", "WARNING")
    fmt = get_setting("logging.format", "%(asctime)s [%(levelname)s]: %(name)s - %(message)s")
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.WARNING), format=fmt)


def open_store(args, load: bool = True):
    """Build a BrainStore from the global options."""
    from chatterbrain.brain import BrainStore
    from chatterbrain.markov_chain import MarkovChain

    rng = random.Random(args.random_seed) if args.random_seed is not None else None
    store = BrainStore(
        chain=MarkovChain.from_settings(rng=rng),
        brain_file=args.brain,
        trainer_file=args.trainer,
    )
    if load:
        store.load()
    return store


# =============================================================================
# Commands
# =============================================================================

def cmd_train(args, out: Output):
    """Learn corpus files into the brain."""
    from pathlib import Path

    store = open_store(args)

    total_links = 0
    for filename in args.files:
        path = Path(filename)
        if not path.exists():
            out.error(f"Corpus file not found: {path}")
            return 1
        links = store.learn(path.read_text(encoding='utf-8'))
        total_links += len(links)
        out.print(f"  {path}: {len(links)} new links")

    store.save()
    stats = store.chain.stats()
    out.success(
        f"Trained {len(args.files)} file(s), {total_links} new links. "
        f"Brain has {stats['words']} words, {stats['ngrams']} n-grams."
    )
    return 0


def cmd_reply(args, out: Output):
    """Generate lines from the brain."""
    from chatterbrain.settings import get_setting

    store = open_store(args)
    fallback = args.fallback if args.fallback is not None else get_setting("chat.fallback_reply", "")

    for _ in range(args.count):
        line = store.chain.get_reply(args.seed or "", fallback).strip()
        if line:
            out.result(line)

    # Generation adds synthesized n-grams to the chain
    if args.save:
        store.save()
    return 0


def cmd_seed(args, out: Output):
    """Show the seed word the brain picks for a text."""
    store = open_store(args)
    seed = store.chain.get_seed_from_text(' '.join(args.text))
    if seed is not None:
        out.result(seed)
    return 0


def cmd_stats(args, out: Output):
    """Show brain statistics."""
    store = open_store(args)
    stats = store.chain.stats()

    if args.json:
        out.result(json.dumps(stats, indent=2))
        return 0

    out.result("Brain Statistics")
    out.result("=" * 50)
    out.result(f"Brain file:        {store.brain_file}")
    out.result(f"Chain length:      {stats['chain_length']}")
    out.result(f"Words:             {stats['words']:>8}")
    out.result(f"N-grams:           {stats['ngrams']:>8}")
    out.result(f"  can start:       {stats['start_ngrams']:>8}")
    out.result(f"  can end:         {stats['end_ngrams']:>8}")
    out.result(f"Successor links:   {stats['successor_links']:>8}")
    out.result(f"Predecessor links: {stats['predecessor_links']:>8}")
    return 0


def respond(store, text: str, recursion: int, fallback: str = "") -> str:
    """
    Learn a line of input and answer it.

    Each iteration replies around the current seed, then re-seeds from
    that reply.
    """
    store.learn(text)
    seed = store.chain.get_seed_from_text(text)
    response = ""
    for i in range(max(1, recursion)):
        response = store.chain.get_reply(seed or "", fallback).strip()
        logger.debug(f"Iteration {i}; Seed: {seed}; Raw Sentence: {response}")
        seed = store.chain.get_seed_from_text(response)
    return response


def cmd_chat(args, out: Output):
    """Interactive chat: learn every line and reply to it."""
    from chatterbrain.settings import get_setting

    store = open_store(args)
    recursion = get_setting("chat.recursion", 1)
    fallback = get_setting("chat.fallback_reply", "")
    prompt = get_setting("chat.prompt", "> ")

    out.print(f"Loaded brain {store.brain_file}. Type !quit to leave, !save to save.")
    try:
        while True:
            try:
                line = input(prompt).strip()
            except EOFError:
                break

            if not line:
                continue
            if line.lower() in QUIT_COMMANDS:
                break
            if line.lower() == '!save':
                store.save()
                out.success(f"Saved {store.brain_file}")
                continue

            reply = respond(store, line, recursion, fallback)
            if reply:
                out.result(f"- {reply}")
    finally:
        if store.save_if_dirty():
            out.print("Saved brain.")
    return 0


# =============================================================================
# Main
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='chatterbrain',
        description='chatterbrain - Markov chain text generator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s train corpus.txt
  %(prog)s reply --seed gorillas -n 3
  %(prog)s seed "what do you know about gorillas"
  %(prog)s stats --json
  %(prog)s --brain other.brn chat
"""
    )

    parser.add_argument('--version', '-V', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress non-essential output')
    parser.add_argument('--brain', '-b', help='Brain file (default: brain.brain_file in app.yaml)')
    parser.add_argument('--trainer', '-t', help='Corpus used when the brain file does not exist')
    parser.add_argument('--log-level', choices=LOG_LEVELS, help='Logging level')
    parser.add_argument('--random-seed', type=int, help='Seed the random source for repeatable output')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # --- train ---
    p = subparsers.add_parser('train', help='Learn corpus files into the brain')
    p.add_argument('files', nargs='+', help='Text files, one sentence per line')

    # --- reply ---
    p = subparsers.add_parser('reply', aliases=['r'], help='Generate lines')
    p.add_argument('--seed', '-s', help='Word to build the lines around')
    p.add_argument('-n', '--count', type=int, default=1, help='Number of lines (default: 1)')
    p.add_argument('--fallback', '-f', help='Text printed when no line can be generated')
    p.add_argument('--save', action='store_true', help='Save the brain afterwards')

    # --- seed ---
    p = subparsers.add_parser('seed', help='Show the seed word picked for a text')
    p.add_argument('text', nargs='*', help='Input text (random lexicon word when empty)')

    # --- stats ---
    p = subparsers.add_parser('stats', help='Show brain statistics')
    p.add_argument('--json', '-j', action='store_true', help='Output as JSON')

    # --- chat ---
    subparsers.add_parser('chat', help='Interactive chat session')

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args.log_level)

    cmd_map = {'r': 'reply'}
    command = cmd_map.get(args.command, args.command)

    out = Output(quiet=getattr(args, 'quiet', False))

    commands = {
        'train': cmd_train,
        'reply': cmd_reply,
        'seed': cmd_seed,
        'stats': cmd_stats,
        'chat': cmd_chat,
    }

    handler = commands.get(command)
    if handler:
        try:
            return handler(args, out)
        except KeyboardInterrupt:
            out.print("\nCancelled.")
            return 130
        except Exception as e:
            out.error(str(e))
            logger.debug("Command failed", exc_info=True)
            return 1

    parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
