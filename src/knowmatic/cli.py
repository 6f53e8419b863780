# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Unified CLI entry point for knowmatic."""

import argparse
import json
import sys

from knowmatic.errors import KnowmaticError
from knowmatic.utils import configure_logging, generation_kwargs


def _fail(e: Exception):
    print(f"Error: {e}", file=sys.stderr)
    sys.exit(1)


def _cmd_tui(args):
    """Run the interactive client."""
    try:
        from knowmatic.tui import main

        main(args.models_dir, num_threads=args.threads)
    except (RuntimeError, ValueError, KnowmaticError) as e:
        _fail(e)


def _cmd_classify(args):
    """Classify a single prompt."""
    try:
        from knowmatic.api import MODEL_MAP, analyze

        report = analyze(args.text, models_dir=args.models_dir, num_threads=args.threads)
    except (RuntimeError, ValueError, KnowmaticError) as e:
        _fail(e)

    if args.json:

        def preds(ps):
            return [{"label": p.label, "score": round(p.score, 4)} for p in ps]

        out = {
            "difficulty": preds(report.difficulty),
            "effort": preds(report.effort),
            "code": {
                "detected": report.code.detected,
                "predictions": preds(report.code.predictions or []),
            },
            "suggested_model": report.suggested_model,
            "savings_pct": report.savings_pct,
            "latency_ms": report.latency_ms,
        }
        print(json.dumps(out, indent=2))
        return

    top = report.difficulty[0]
    effort = report.effort[0]
    print(f"Difficulty:  {top.label:<8} {top.score * 100:5.1f}%  -> {MODEL_MAP.get(top.label, top.label)}")
    print(f"Effort:      {effort.label:<8} {effort.score * 100:5.1f}%")
    if report.code.detected and report.code.predictions:
        lang = report.code.predictions[0]
        print(f"Code:        {lang.label:<8} {lang.score * 100:5.1f}%")
    else:
        print("Code:        none detected")
    if report.savings_pct:
        print(f"Savings:     {report.savings_pct}% vs Opus")
    print(f"Latency:     {report.latency_ms}ms")


def _cmd_complete(args):
    """Print the continuation of a prompt."""
    options = generation_kwargs(
        max_new_tokens=args.max_new_tokens,
        temperature=args.temperature,
        top_k=args.top_k,
        min_confidence=args.min_confidence,
        repetition_penalty=args.repetition_penalty,
    )
    try:
        from knowmatic.api import Autocompleter

        autocompleter = Autocompleter.load(args.models_dir, args.threads)
        if args.stream:
            for piece in autocompleter.stream(args.text, **options):
                print(piece, end="", flush=True)
            print()
        else:
            print(autocompleter.complete(args.text, **options).text)
    except (RuntimeError, ValueError, KnowmaticError) as e:
        _fail(e)


def _cmd_serve(args):
    """Start the API server."""
    try:
        from knowmatic.model_store import resolve_models_dir
        from knowmatic.server import Autocomplete, Classifier, Server

        directory = resolve_models_dir(args.models_dir)
        components = [Autocomplete(directory, num_threads=args.threads)]
        if not args.no_classify:
            components.append(Classifier(directory, num_threads=args.threads))
        Server(*components).run(host=args.host, port=args.port)
    except (RuntimeError, ValueError, KnowmaticError) as e:
        _fail(e)


def _cmd_pull(args):
    """Pull a model bundle from HuggingFace."""
    try:
        from knowmatic.model_store import pull_models

        pull_models(
            args.repo_id,
            revision=args.revision,
            token=args.token,
            force=args.force,
        )
    except RuntimeError as e:
        _fail(e)


def _cmd_models(args):
    """List locally downloaded model bundles."""
    from knowmatic.model_store import list_models

    models = list_models()

    if args.json:
        print(json.dumps({"models": models}, indent=2))
        return

    if not models:
        print("No models found. Run: knowmatic pull <org/bundle>")
        return

    id_w = max(len("MODEL ID"), *(len(m["model_id"]) for m in models))
    size_w = 8

    print(f"{'MODEL ID':<{id_w}}  {'SIZE':>{size_w}}  STATUS")
    print(f"{'-' * id_w}  {'-' * size_w}  {'-' * 10}")
    for m in models:
        status = "ok" if m["complete"] else "incomplete"
        print(f"{m['model_id']:<{id_w}}  {m['size_human']:>{size_w}}  {status}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="knowmatic",
        description="Knowmatic: local prompt classification and autocomplete",
    )
    parser.add_argument("--models-dir", help="Model bundle directory or HuggingFace ID")
    parser.add_argument("--threads", type=int, default=0, help="Number of threads (0 = auto)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    # --- tui ---
    p_tui = sub.add_parser("tui", help="Interactive prompt editor with ghost-text suggestions")
    p_tui.set_defaults(func=_cmd_tui)

    # --- classify ---
    p_cls = sub.add_parser("classify", help="Classify a prompt")
    p_cls.add_argument("text", help="Prompt text")
    p_cls.add_argument("--json", action="store_true", help="Output as JSON")
    p_cls.set_defaults(func=_cmd_classify)

    # --- complete ---
    p_cmp = sub.add_parser("complete", help="Autocomplete a prompt")
    p_cmp.add_argument("text", help="Prompt text")
    p_cmp.add_argument("--stream", action="store_true", help="Print pieces as they are generated")
    p_cmp.add_argument("--max-new-tokens", type=int, default=None)
    p_cmp.add_argument("--temperature", type=float, default=None)
    p_cmp.add_argument("--top-k", type=int, default=None)
    p_cmp.add_argument("--min-confidence", type=float, default=None, help="Stop when the top probability drops below this")
    p_cmp.add_argument("--repetition-penalty", type=float, default=None)
    p_cmp.set_defaults(func=_cmd_complete)

    # --- serve ---
    p_serve = sub.add_parser("serve", help="Start the HTTP API server")
    p_serve.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    p_serve.add_argument("--port", type=int, default=8000, help="Port to bind to")
    p_serve.add_argument("--no-classify", action="store_true", help="Serve completions only")
    p_serve.set_defaults(func=_cmd_serve)

    # --- pull ---
    p_pull = sub.add_parser("pull", help="Download a model bundle from HuggingFace")
    p_pull.add_argument("repo_id", help="HuggingFace repo ID (e.g. org/bundle)")
    p_pull.add_argument("--revision", help="Branch, tag, or commit hash")
    p_pull.add_argument("--token", help="HuggingFace token for gated/private repos")
    p_pull.add_argument("--force", "-f", action="store_true", help="Re-download even if exists")
    p_pull.set_defaults(func=_cmd_pull)

    # --- models ---
    p_models = sub.add_parser("models", help="List locally downloaded model bundles")
    p_models.add_argument("--json", action="store_true", help="Output as JSON")
    p_models.set_defaults(func=_cmd_models)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    if not args.command:
        args.func = _cmd_tui

    args.func(args)


if __name__ == "__main__":
    main()
