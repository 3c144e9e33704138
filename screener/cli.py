"""
screener/cli.py
Command-line batch runner for the SMS screener.

USAGE:
  screener messages.xlsx
  screener messages.csv --output results.xlsx
  screener messages.csv --backend ollama --model llama3.1:8b
  screener --list-models --backend ollama

EXAMPLES:
  # Gemini (needs GEMINI_API_KEY in the environment)
  screener ./uploads/batch-01.xlsx -o batch-01-results.csv

  # Local Ollama, four rows in flight, retry each failed request twice
  screener ./uploads/batch-01.csv --backend ollama --workers 4 --max-retries 2
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from screener.config import BACKENDS, ClassifierConfig, build_classifier, load_config
from screener.errors import ScreenerError
from screener.llm.ollama_adapter import OllamaAdapter
from screener.normalizer import normalize_records
from screener.parsers.table_parser import parse_table
from screener.pipeline import iter_batch, summarize
from screener.report_export import EXPORT_FILENAMES, EXPORT_SUFFIXES, write_export

logger = logging.getLogger(__name__)

GREEN  = '\033[92m'
YELLOW = '\033[93m'
RED    = '\033[91m'
CYAN   = '\033[96m'
RESET  = '\033[0m'
BOLD   = '\033[1m'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog        = 'screener',
        description = 'SMS Screener — bulk spam / scam classification of SMS sheets',
        formatter_class = argparse.RawDescriptionHelpFormatter,
        epilog = """
INPUT:
  .csv or .xlsx with 'sender' and 'text' columns (header names are
  case-insensitive). Every row must have both values.
        """
    )
    parser.add_argument(
        'input',
        nargs = '?',
        type  = Path,
        help  = 'CSV or XLSX file to screen',
    )
    parser.add_argument(
        '--output', '-o',
        default = Path(EXPORT_FILENAMES['csv']),
        type    = Path,
        help    = f"Result file, .csv or .xlsx (default: {EXPORT_FILENAMES['csv']})",
    )
    parser.add_argument(
        '--backend', '-b',
        choices = BACKENDS,
        default = None,
        help    = 'Remote classifier backend (default: from config, gemini)',
    )
    parser.add_argument(
        '--model', '-m',
        default = None,
        help    = 'Model name (default: gemini-2.5-flash / llama3.1:8b)',
    )
    parser.add_argument(
        '--ollama-host',
        default = None,
        help    = 'Ollama host URL (default: http://localhost:11434)',
    )
    parser.add_argument(
        '--workers', '-w',
        type    = int,
        default = None,
        help    = 'Rows classified concurrently; results stay in input order (default: 1)',
    )
    parser.add_argument(
        '--max-retries',
        type    = int,
        default = None,
        help    = 'Retries per row on remote request failure (default: 0)',
    )
    parser.add_argument(
        '--list-models',
        action  = 'store_true',
        help    = 'List locally available Ollama models and exit',
    )
    parser.add_argument(
        '--verbose', '-v',
        action  = 'store_true',
        help    = 'Enable debug logging',
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # ── LOGGING SETUP ────────────────────────────────────────
    logging.basicConfig(
        level   = logging.DEBUG if args.verbose else logging.INFO,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    config = load_config()
    for key, value in (
        ('backend',     args.backend),
        ('model',       args.model),
        ('ollama_host', args.ollama_host),
        ('workers',     args.workers),
        ('max_retries', args.max_retries),
    ):
        if value is not None:
            config[key] = value

    # ── LIST MODELS ──────────────────────────────────────────
    if args.list_models:
        adapter = OllamaAdapter(host=config['ollama_host'])
        models  = adapter.list_available_models()
        if models:
            _print(f"\n{BOLD}Available Ollama models:{RESET}")
            for m in models:
                _print(f"  • {m}")
        else:
            _print(f"{YELLOW}No models found. Is Ollama running?{RESET}")
        return 0

    if args.input is None:
        _print(f"{RED}Error: an input file is required{RESET}")
        return 2
    if not args.input.exists():
        _print(f"{RED}Error: File not found: {args.input}{RESET}")
        return 1
    if args.output.suffix.lower() not in EXPORT_SUFFIXES:
        _print(f"{RED}Error: output must be a .csv or .xlsx file: {args.output}{RESET}")
        return 1

    try:
        classifier = build_classifier(ClassifierConfig.from_dict(config))
    except ScreenerError as e:
        _print(f"{RED}Error: {e}{RESET}")
        return 1

    _banner()
    _print(f"Input file       : {CYAN}{args.input}{RESET}")
    _print(f"Output file      : {CYAN}{args.output}{RESET}")
    _print(f"Backend / model  : {CYAN}{classifier.name} / {classifier.model}{RESET}")
    _print("")

    # ── PARSE ────────────────────────────────────────────────
    _step("Reading messages...")
    t0 = time.time()
    try:
        records = normalize_records(parse_table(args.input.read_bytes(), args.input.name))
    except ScreenerError as e:
        _print(f"{RED}Error: {e}{RESET}")
        return 1
    _ok(f"{len(records)} messages read in {_elapsed(t0)}")

    if not records:
        _print(f"\n{YELLOW}No rows to screen in {args.input}{RESET}")
        return 1

    # ── CLASSIFY ─────────────────────────────────────────────
    _step("Screening messages...")
    t0 = time.time()

    def progress(current, total):
        pct = int((current / total) * 40)
        bar = '█' * pct + '░' * (40 - pct)
        sys.stdout.write(f"\r  [{bar}] {current}/{total}")
        sys.stdout.flush()

    results = []
    try:
        for result in iter_batch(records, classifier, progress_cb=progress,
                                 workers=int(config.get('workers') or 1)):
            results.append(result)
    except KeyboardInterrupt:
        sys.stdout.write('\n')
        _print(f"{YELLOW}Interrupted — exporting {len(results)} finished rows{RESET}")
    else:
        sys.stdout.write('\n')
        _ok(f"{len(results)} messages screened in {_elapsed(t0)}")

    # ── EXPORT ───────────────────────────────────────────────
    try:
        path = write_export(results, args.output)
    except Exception as e:
        logger.error(f"Export to {args.output} failed: {e}", exc_info=args.verbose)
        _print(f"{RED}Error writing {args.output}: {e}{RESET}")
        _save_fallback(results, args.output)
        return 1

    # ── SUMMARY ──────────────────────────────────────────────
    summary = summarize(results)
    _print(f"\n{BOLD}{GREEN}✓ Complete{RESET}")
    _print(f"  Messages   : {summary.total:,}")
    for case, count in summary.by_case.items():
        _print(f"    {case:<10}: {count:,}")
    _print(f"\n  Categories:")
    for category, count in summary.by_category.items():
        _print(f"    {category:<20}: {count:,}")
    _print(f"\n  Results    : {path.resolve()}\n")
    return 0


def _save_fallback(results, failed: Path):
    """Keep finished rows as CSV in the working directory."""
    fallback = Path(EXPORT_FILENAMES['csv']).resolve()
    if fallback == failed.resolve():
        return
    try:
        write_export(results, fallback)
    except OSError as e:
        _print(f"{RED}Fallback export failed too: {e}{RESET}")
        return
    _print(f"{YELLOW}{len(results)} results saved to {fallback} instead{RESET}")


# ── PRINT HELPERS ────────────────────────────────────────────

def _banner():
    _print(f"\n{BOLD}{CYAN}  SMS SCREENER — spam / scam / prohibited content{RESET}\n")

def _step(msg):  _print(f"  {CYAN}→{RESET} {msg}")
def _ok(msg):    _print(f"  {GREEN}✓{RESET} {msg}")
def _print(msg): print(msg)

def _elapsed(t0: float) -> str:
    s = time.time() - t0
    return f"{s:.1f}s" if s < 60 else f"{int(s//60)}m {int(s%60)}s"


if __name__ == '__main__':
    sys.exit(main())
