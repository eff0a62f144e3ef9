"""
Command-line interface for the parlance front end.

Grammars given with -g are loaded (in order) before the command runs, so
commands that inspect or change rules work on that combined grammar.
"""
import sys
import argparse
import json
import logging
from pathlib import Path

from tqdm import tqdm

from .config import DEFAULT_GRAMMAR_DIR, FrontEndConfig
from .logging_config import setup_logging
from .morphology import Morphology
from .pipeline import Interpreter
from .speech_act import AttnMode
from . import alist as al


def _build_interpreter(args) -> Interpreter:
    """Interpreter configured from the global flags, with every -g grammar loaded."""
    config = FrontEndConfig(
        attn_mode=AttnMode[args.attn_mode.upper()],
        close_fragments=args.close,
        allow_substitute=args.substitute,
    )
    if args.top:
        config.top_rule = args.top
    interp = Interpreter(config)
    for path in args.grammar or []:
        if interp.load_grammar(path, robot_name=args.robot_name) < 0:
            print(f"ERROR: cannot read grammar {path}", file=sys.stderr)
            sys.exit(1)
    return interp


def _need_grammar(args):
    if not args.grammar:
        print("ERROR: no grammar loaded (use -g PATH)", file=sys.stderr)
        sys.exit(1)


def cmd_load_grammar(args):
    """Load a grammar and report what it contains."""
    args.grammar = (args.grammar or []) + [args.path]
    interp = _build_interpreter(args)
    g = interp.grammar
    print(g.summary())
    print(f"Heads: {len(g.heads())}  Sentence rules: {', '.join(g.top_heads()) or '(none)'}")
    print(f"Words: {len(interp.vocabulary)}  Morphology exceptions: {interp.morphology.num_exceptions()}")
    if g.alerts:
        print(f"Attention words: {', '.join(g.alerts)}")
    if args.list:
        for rule in g.list_rules():
            print(f"  {rule}")


def _set_rule(args, on: bool):
    _need_grammar(args)
    interp = _build_interpreter(args)
    g = interp.grammar
    ok = g.enable(args.rule) if on else g.disable(args.rule)
    if not ok:
        print(f"ERROR: no rule <{args.rule}>", file=sys.stderr)
        sys.exit(1)
    print(f"Sentence rules: {', '.join(g.top_heads()) or '(none)'}")
    if args.out:
        g.dump(args.out)


def cmd_enable(args):
    """Let a rule start a sentence."""
    _set_rule(args, True)


def cmd_disable(args):
    """Stop a rule from starting a sentence."""
    _set_rule(args, False)


def _print_result(interp, result, args):
    if result is None:
        print("(asleep)")
        return
    if args.format == 'json':
        data = result.to_dict()
        if args.tree:
            data["tree"] = interp.parser.tree_text()
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return
    print(f"Speech act: {result.label}")
    print(f"Alist: {al.pretty(result.alist) or '(empty)'}")
    if result.corrected:
        print(f"Corrected: {result.corrected}")
    for word, cat in result.guesses:
        print(f"Guessed: {word} as {cat}")
    if result.unknown:
        print(f"Unknown: {' '.join(result.unknown)}")
    if args.tree and result.alist:
        print(interp.parser.tree_text())


def cmd_parse(args):
    """Interpret a sentence (or every line of a file)."""
    _need_grammar(args)
    interp = _build_interpreter(args)
    awake = not args.asleep

    if args.file:
        try:
            with open(args.file, 'r', encoding='utf-8') as f:
                lines = [line.strip() for line in f if line.strip()]
        except OSError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            sys.exit(1)
        results = []
        for line in tqdm(lines, desc="Parsing", unit=" sentences"):
            results.append((line, interp.interpret(line, awake=awake)))
        if args.format == 'json':
            print(json.dumps([r.to_dict() if r else None for _, r in results],
                             indent=2, ensure_ascii=False))
        else:
            for line, result in results:
                act = result.label if result else "(asleep)"
                alist = al.pretty(result.alist) if result else ""
                print(f"{act:<10} {alist:<40} | {line}")
        return

    if args.sentence:
        text = args.sentence
    else:
        print("Enter a sentence:")
        text = input().strip()
    result = interp.interpret(text, awake=awake, conf=args.conf)
    _print_result(interp, result, args)


def cmd_dump_rules(args):
    """Write the expanded rules of the loaded grammar."""
    _need_grammar(args)
    interp = _build_interpreter(args)
    count = interp.grammar.dump(args.path)
    if count < 0:
        print(f"ERROR: cannot write {args.path}", file=sys.stderr)
        sys.exit(1)
    print(f"Wrote {count} rules to {args.path}")


def _load_morph(morph: Morphology, path):
    if path and morph.load_exceptions(path) < 0:
        print(f"ERROR: cannot read morphology from {path}", file=sys.stderr)
        sys.exit(1)


def cmd_harvest_lex(args):
    """Write the inflected forms of a base lexicon."""
    morph = Morphology()
    _load_morph(morph, args.base)
    out = args.out or str(Path(args.base).with_name("derived.sgm"))
    report = morph.write_derived(args.base, out, check=False, progress=True)
    print(f"Wrote {report.count()} derived forms to {out}")


def cmd_check_morph(args):
    """Derive forms and verify that each one inverts to its base."""
    morph = Morphology()
    try:
        if args.out:
            report = morph.write_derived(args.base, args.out, check=True, progress=True)
        else:
            report = morph.derive_lexicon(args.base, check=True, progress=True)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    for msg in report.problems:
        print(f"  {msg} !")
    print(f"Found {report.errors} inconsistencies in {report.count()} derived forms")
    if report.errors:
        sys.exit(1)


def cmd_base_lex(args):
    """Recover base words from a derived lexicon."""
    morph = Morphology()
    _load_morph(morph, args.morph)
    try:
        report = morph.base_lexicon(args.derived, check=True, out_path=args.out)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    for sec, words in report.sections.items():
        print(f"{sec}: {' '.join(words)}")
    print(f"Found {report.errors} inconsistencies")
    if report.errors:
        sys.exit(1)


def cmd_words(args):
    """List the known words of the loaded grammar."""
    _need_grammar(args)
    interp = _build_interpreter(args)
    try:
        count = interp.vocabulary.write_words(args.path)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Wrote {count} words to {args.path}")


def cmd_orphans(args):
    """List rule heads that nothing refers to."""
    _need_grammar(args)
    interp = _build_interpreter(args)
    if args.out:
        count = interp.vocabulary.write_orphans(interp.grammar, args.out)
        print(f"Wrote {count} orphan rules to {args.out}")
        return
    for name in interp.vocabulary.orphans(interp.grammar):
        print(name)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='parlance',
        description='Parlance: grammar-driven front end for spoken and typed commands',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Interpret a sentence
  parlance -g {DEFAULT_GRAMMAR_DIR / 'robot.sgm'} parse "drink some Coke"
  parlance -g robot.sgm parse --file utterances.txt --format json

  # Grammar maintenance
  parlance load-grammar robot.sgm --list
  parlance -g robot.sgm dump-rules expanded.sgm
  parlance -g robot.sgm orphans

  # Morphology
  parlance harvest-lex lexicon.sgm --out derived.sgm
  parlance check-morph lexicon.sgm
  parlance base-lex derived.sgm --morph lexicon.sgm
        """
    )
    parser.add_argument('-g', '--grammar', action='append',
                        help='Grammar file to load (repeatable)')
    parser.add_argument('--top', help='Sentence rule to enable (default: toplevel)')
    parser.add_argument('--robot-name', help='Extra attention word')
    parser.add_argument('--attn-mode', choices=[m.name.lower() for m in AttnMode],
                        default='always', help='When an utterance wakes the system')
    parser.add_argument('--close', action='store_true',
                        help='Emit closing phrase markers in association lists')
    parser.add_argument('--substitute', action='store_true',
                        help='Allow one-letter substitutions when fixing typos')
    parser.add_argument('--log-file', help='Append log output to this file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log progress (INFO)')
    parser.add_argument('--debug', action='store_true', help='Verbose debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # --- grammar commands ---
    p = subparsers.add_parser('load-grammar', help='Load a grammar and summarize it')
    p.add_argument('path', help='Grammar file (.sgm)')
    p.add_argument('--list', action='store_true', help='Print every expanded rule')
    p.set_defaults(func=cmd_load_grammar)

    for name, func, text in (('enable', cmd_enable, 'Allow a rule to start a sentence'),
                             ('disable', cmd_disable, 'Stop a rule from starting a sentence')):
        p = subparsers.add_parser(name, help=text)
        p.add_argument('rule', help='Rule head')
        p.add_argument('--out', help='Write the resulting rules to this file')
        p.set_defaults(func=func)

    p = subparsers.add_parser('parse', help='Interpret a sentence')
    p.add_argument('sentence', nargs='?', help='Sentence to interpret')
    p.add_argument('-f', '--file', help='Interpret every line of a file')
    p.add_argument('--format', choices=['text', 'json'], default='text',
                   help='Output format (default: text)')
    p.add_argument('--tree', action='store_true', help='Show the selected derivation')
    p.add_argument('--conf', help='Per-word confidences, e.g. "90 80 100"')
    p.add_argument('--asleep', action='store_true',
                   help='Ignore utterances without an attention word')
    p.set_defaults(func=cmd_parse)

    p = subparsers.add_parser('dump-rules', help='Write the expanded rules')
    p.add_argument('path', help='Output file')
    p.set_defaults(func=cmd_dump_rules)

    p = subparsers.add_parser('words', help='Write the known words')
    p.add_argument('path', help='Output file')
    p.set_defaults(func=cmd_words)

    p = subparsers.add_parser('orphans', help='List rules nothing refers to')
    p.add_argument('--out', help='Write the list to this file')
    p.set_defaults(func=cmd_orphans)

    # --- morphology commands ---
    p = subparsers.add_parser('harvest-lex', help='Derive inflected forms of a lexicon')
    p.add_argument('base', help='Base lexicon grammar')
    p.add_argument('--out', help='Output file (default: derived.sgm beside the base)')
    p.set_defaults(func=cmd_harvest_lex)

    p = subparsers.add_parser('check-morph', help='Check derived forms invert to their bases')
    p.add_argument('base', help='Base lexicon grammar')
    p.add_argument('--out', help='Also write the derived forms here')
    p.set_defaults(func=cmd_check_morph)

    p = subparsers.add_parser('base-lex', help='Recover base words from a derived lexicon')
    p.add_argument('derived', help='Derived lexicon grammar')
    p.add_argument('--morph', help='Grammar holding the irregular forms')
    p.add_argument('--out', help='Write "base <- surface" lines here')
    p.set_defaults(func=cmd_base_lex)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    level = logging.INFO if args.verbose else logging.WARNING
    setup_logging(log_file=args.log_file, level=level, debug=args.debug)

    if hasattr(args, 'func'):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
