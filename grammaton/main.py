# grammaton/main.py
import argparse
import logging
import sys

from rich.console import Console

from grammaton.automaton.builder import AutomatonBuilder
from grammaton.automaton.export import get_codec, render_debug, write_automaton
from grammaton.automaton.walker import AutomatonWalker
from grammaton.config import GrammatonConfig, GrammatonConfigError
from grammaton.errors import GrammatonError
from grammaton.grammar.builtin_grammars import BuiltinGrammars
from grammaton.grammar.grammar_parser import load_grammar_file
from grammaton.logger import setup_grammaton_logger

logger = logging.getLogger("grammaton.main")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grammaton",
        description="Grammaton: compile a context-free grammar into a finite automaton for grammar-aware fuzzing"
    )
    parser.add_argument("grammar", nargs="?",
                        help="Grammar file (.json for the JSON format, anything else is BNF/EBNF).")
    parser.add_argument("--builtin", choices=BuiltinGrammars.list_grammars(),
                        help="Compile a built-in grammar instead of a file.")
    parser.add_argument("-o", "--output", help="Write the encoded automaton to this file.")
    parser.add_argument("--start", help="Start non-terminal (default: 'Start' for JSON grammars, else the first rule).")
    parser.add_argument("--format", choices=["binary", "json"], default=None,
                        help="Output encoding (default from config: binary).")
    parser.add_argument("--stack-limit", type=int, default=None,
                        help="Maximum continuation length kept in a state (default 16).")
    parser.add_argument("--max-states", type=int, default=None,
                        help="Abort construction past this many states, 0 for no limit (default 1000000).")
    parser.add_argument("--debug", action="store_true", help="Print a human-readable state listing.")
    parser.add_argument("--generate", type=int, default=0, metavar="N",
                        help="Print N sample strings produced by random walks.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for --generate.")
    parser.add_argument("--config", default=None,
                        help="Optional path to an alternate config file (otherwise uses ~/.grammaton/config.json).")
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Set the logging level.")
    parser.add_argument("--quiet", action="store_true",
                        help="Minimize console output (overrides log-level to WARNING).")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.grammar and not args.builtin:
        parser.print_usage(sys.stderr)
        print("grammaton: error: a grammar file or --builtin is required", file=sys.stderr)
        return EXIT_USAGE
    if args.grammar and args.builtin:
        print("grammaton: error: give either a grammar file or --builtin, not both", file=sys.stderr)
        return EXIT_USAGE

    try:
        cfg = GrammatonConfig.load(args.config)
    except GrammatonConfigError as e:
        print(f"grammaton: error: {e}", file=sys.stderr)
        return EXIT_USAGE

    cfg.update(
        start_symbol=args.start,
        stack_limit=args.stack_limit,
        max_states=args.max_states,
        output_format=args.format,
        log_level=args.log_level,
    )
    log_level = logging.WARNING if args.quiet else getattr(logging, cfg.log_level.upper(), logging.INFO)
    setup_grammaton_logger(log_level=log_level, log_to_file=cfg.log_to_file, log_file=cfg.log_file)

    console = Console()
    status = Console(stderr=True)
    try:
        if args.builtin:
            grammar = BuiltinGrammars.get_grammar(args.builtin, cfg.start_symbol)
        else:
            grammar = load_grammar_file(args.grammar, cfg.start_symbol)

        builder = AutomatonBuilder(grammar, stack_limit=cfg.stack_limit, max_states=cfg.max_states)
        automaton = builder.build()

        if args.output:
            write_automaton(args.output, automaton, get_codec(cfg.output_format))
    except GrammatonError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return EXIT_FAILURE
    except ValueError as e:
        logger.error(str(e))
        return EXIT_USAGE

    if args.debug:
        console.print(render_debug(automaton), markup=False, highlight=False, soft_wrap=True)

    if args.generate:
        walker = AutomatonWalker(automaton, max_length=cfg.max_length,
                                 stop_probability=cfg.stop_probability, seed=args.seed)
        for sample in walker.generate_batch(args.generate):
            console.print(sample, markup=False, highlight=False, soft_wrap=True)

    if not args.quiet:
        stats = builder.stats
        status.print(
            f"[green]<{grammar.start}>[/green]: {stats['states']} states, {stats['edges']} edges "
            f"({stats['memo_entries']} memo entries, {stats['pruned_expansions']} expansions over the stack limit)",
            highlight=False,
        )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
