"""Command line interface for seqgen."""

from __future__ import annotations

import argparse
import logging
import sys

from .generation import GenerationConfig


def _get_version() -> str:
    try:
        from importlib.metadata import version
        return version("seqgen")
    except Exception:
        return "unknown"


def config_from_args(args: argparse.Namespace) -> GenerationConfig:
    """Build a GenerationConfig from parsed generate options."""
    return GenerationConfig(
        min_length=args.min_length,
        max_length=args.max_length,
        do_sample=not args.greedy,
        early_stopping=args.early_stopping,
        num_beams=args.num_beams,
        temperature=args.temperature,
        top_k=args.top_k,
        top_p=args.top_p,
        repetition_penalty=args.repetition_penalty,
        length_penalty=args.length_penalty,
        no_repeat_ngram_size=args.no_repeat_ngram_size,
        num_return_sequences=args.num_return_sequences,
    )


def cmd_generate(args: argparse.Namespace) -> None:
    """Generate continuations for one or more prompts."""
    from .data import ModelLoadingError, load_generator
    from .utils import get_logger

    logger = get_logger("seqgen.cli")

    prompts: list[str] = list(args.prompts)
    if not prompts and not sys.stdin.isatty():
        prompts = [line.strip() for line in sys.stdin if line.strip()]

    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    try:
        generator = load_generator(args.model, config=config, device=args.device)
    except ModelLoadingError as e:
        print(f"Error: {e}")
        sys.exit(1)

    logger.info(f"Params: max_length={config.max_length}, num_beams={config.num_beams}, "
                f"do_sample={config.do_sample}, temp={config.temperature}, "
                f"top_k={config.top_k}, top_p={config.top_p}")
    texts = generator.generate(prompts or None)
    for index, text in enumerate(texts):
        print(f"[{index}] {text}")


def cmd_models(args: argparse.Namespace) -> None:
    """List available model aliases."""
    from .data.registry import MODEL_REGISTRY

    print()
    print(f"  {'Alias':<14} {'Params':<8} {'Description':<50} {'HuggingFace ID'}")
    print(f"  {'─' * 14} {'─' * 8} {'─' * 50} {'─' * 36}")
    for alias, info in MODEL_REGISTRY.items():
        print(
            f"  {alias:<14} {info['params']:<8} {info['description']:<50} {info['hf_name']}"
        )
    print()
    print('Usage:  seqgen generate "The dog" -m gpt2 --num-beams 3')
    print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seqgen",
        description="Autoregressive text generation with greedy, sampling and beam search decoding",
    )
    parser.add_argument("-V", "--version", action="version", version=f"seqgen {_get_version()}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show model loading details")
    parser.add_argument("--debug", action="store_true", help="Show per-step decoding output")
    subparsers = parser.add_subparsers(dest="command")

    defaults = GenerationConfig()
    gen_parser = subparsers.add_parser("generate", help="Generate text from prompts")
    gen_parser.add_argument("prompts", nargs="*", help="Prompt texts (read from stdin when omitted)")
    gen_parser.add_argument("-m", "--model", default="gpt2",
                            help="Model alias, local path or hub name (default: gpt2)")
    gen_parser.add_argument("--device", default=None, help="cuda, mps or cpu (default: auto)")
    gen_parser.add_argument("--min-length", type=int, default=defaults.min_length)
    gen_parser.add_argument("--max-length", type=int, default=defaults.max_length,
                            help="Maximum length in tokens, prompt included")
    gen_parser.add_argument("--greedy", action="store_true", help="Disable sampling")
    gen_parser.add_argument("--early-stopping", action="store_true",
                            help="Stop beam search once num_beams hypotheses are finished")
    gen_parser.add_argument("--num-beams", type=int, default=defaults.num_beams)
    gen_parser.add_argument("--temperature", type=float, default=defaults.temperature)
    gen_parser.add_argument("--top-k", type=int, default=defaults.top_k)
    gen_parser.add_argument("--top-p", type=float, default=defaults.top_p)
    gen_parser.add_argument("--repetition-penalty", type=float, default=defaults.repetition_penalty)
    gen_parser.add_argument("--length-penalty", type=float, default=defaults.length_penalty)
    gen_parser.add_argument("--no-repeat-ngram-size", type=int, default=defaults.no_repeat_ngram_size)
    gen_parser.add_argument("--num-return-sequences", type=int, default=defaults.num_return_sequences)
    gen_parser.set_defaults(func=cmd_generate)

    models_parser = subparsers.add_parser("models", help="List available model aliases")
    models_parser.set_defaults(func=cmd_models)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from .utils import set_verbosity
    if args.debug:
        set_verbosity(logging.DEBUG)
    elif args.verbose:
        set_verbosity(logging.INFO)
    else:
        set_verbosity(logging.WARNING)

    args.func(args)


if __name__ == "__main__":
    main()
