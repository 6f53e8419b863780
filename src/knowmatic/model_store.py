# Copyright (c) 2026 Knowmatic. Licensed under the MIT License. See LICENSE.
"""Model store: pull model bundles from HuggingFace and manage local copies."""

import os
import re
from pathlib import Path

MODELS_DIR = Path.home() / ".knowmatic" / "models"
MODELS_DIR_ENV = "KNOWMATIC_MODELS_DIR"

# Files every bundle must provide, relative to the bundle root.
TOKENIZER_FILE = os.path.join("tokenizer", "tokenizer.json")
AUTOCOMPLETE_TOKENIZER_FILE = os.path.join("tokenizer", "tokenizer_autocomplete.json")
MODEL_FILE = "model_quantized.onnx"

CLASSIFIERS = {
    "difficulty": "difficulty_classifier",
    "effort": "reasoning_effort",
    "code": "code_classifier",
}
AUTOCOMPLETE_DIR = "sft"
AUTOCOMPLETE_METADATA = "sft_metadata.json"

REQUIRED_FILES = [
    TOKENIZER_FILE,
    AUTOCOMPLETE_TOKENIZER_FILE,
    *(os.path.join(d, f) for d in CLASSIFIERS.values() for f in (MODEL_FILE, "metadata.json")),
    os.path.join(AUTOCOMPLETE_DIR, MODEL_FILE),
    os.path.join(AUTOCOMPLETE_DIR, AUTOCOMPLETE_METADATA),
]

_HF_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def models_root() -> Path:
    """Directory that holds downloaded bundles (``$KNOWMATIC_MODELS_DIR`` wins)."""
    env = os.environ.get(MODELS_DIR_ENV)
    return Path(env).expanduser() if env else MODELS_DIR


def _looks_like_hf_id(arg: str) -> bool:
    """Return True if arg looks like a HuggingFace repo ID (org/name)."""
    if arg.startswith(("/", ".", "~")):
        return False
    return bool(_HF_ID_RE.match(arg))


def _is_bundle(path: Path) -> bool:
    return (path / "tokenizer").is_dir()


def resolve_models_dir(arg: str | None = None) -> str:
    """Resolve a models argument to a local bundle directory.

    With no argument, use the models root itself if it is a bundle, or the
    single bundle downloaded under it.  An existing directory is returned
    unchanged; an ``org/name`` ID is looked up under the models root.
    """
    root = models_root()
    if arg is None:
        if _is_bundle(root):
            return str(root)
        bundles = list_models()
        if len(bundles) == 1:
            return bundles[0]["path"]
        if len(bundles) > 1:
            raise RuntimeError(
                "Several model bundles found; pick one with --models-dir: "
                + ", ".join(m["model_id"] for m in bundles)
            )
        return str(root)

    if os.path.isdir(arg):
        return arg

    expanded = os.path.expanduser(arg)
    if os.path.isdir(expanded):
        return expanded

    if _looks_like_hf_id(arg):
        local = root / arg
        if local.is_dir():
            return str(local)
        raise RuntimeError(f"Models '{arg}' not found locally. Run: knowmatic pull {arg}")

    # Not an ID and not a directory: let the loaders report the missing files
    return arg


def validate_models_dir(path: str) -> list[str]:
    """Return the required files missing from the bundle at *path*."""
    return [rel for rel in REQUIRED_FILES if not os.path.isfile(os.path.join(path, rel))]


def pull_models(
    repo_id: str, revision: str | None = None, token: str | None = None, force: bool = False
) -> Path:
    """Download a model bundle from HuggingFace."""
    local_dir = models_root() / repo_id

    if local_dir.is_dir() and not force:
        print(f"Models '{repo_id}' already exist at {local_dir}")
        print("Use --force to re-download.")
        return local_dir

    local_dir.parent.mkdir(parents=True, exist_ok=True)

    print(f"Pulling {repo_id} ...")

    try:
        from huggingface_hub import snapshot_download

        snapshot_download(
            repo_id,
            local_dir=str(local_dir),
            revision=revision,
            token=token,
        )
    except Exception as e:
        cls_name = type(e).__name__
        if cls_name == "RepositoryNotFoundError":
            raise RuntimeError(f"Repository '{repo_id}' not found on HuggingFace") from e
        elif cls_name == "GatedRepoError":
            raise RuntimeError(
                f"'{repo_id}' is a gated repository. Pass --token or run: hf auth login"
            ) from e
        else:
            raise

    print(f"Downloaded to {local_dir}")
    missing = validate_models_dir(str(local_dir))
    if missing:
        print(f"Warning: bundle is missing {len(missing)} file(s): {', '.join(missing)}")
    return local_dir


def list_models() -> list[dict]:
    """List bundles downloaded under the models root (``org/name`` layout)."""
    root = models_root()
    models: list[dict] = []
    if not root.is_dir():
        return models

    for org_dir in sorted(root.iterdir()):
        if not org_dir.is_dir():
            continue
        for bundle in sorted(org_dir.iterdir()):
            if not bundle.is_dir() or not _is_bundle(bundle):
                continue
            size_bytes = sum(p.stat().st_size for p in bundle.rglob("*.onnx"))
            models.append(
                {
                    "model_id": f"{org_dir.name}/{bundle.name}",
                    "path": str(bundle),
                    "size_bytes": size_bytes,
                    "size_human": _human_size(size_bytes) if size_bytes else "-",
                    "complete": not validate_models_dir(str(bundle)),
                }
            )
    return models


def _human_size(n: int) -> str:
    """Format bytes as a human-readable string."""
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if n < 1024:
            if unit == "B":
                return f"{n:.0f} B"
            return f"{n:.1f}".rstrip("0").rstrip(".") + f" {unit}"
        n /= 1024
    return f"{n:.1f} PB"
