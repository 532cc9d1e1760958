"""Cloud ingestion entrypoint.

This script loads files from a directory, creates (or updates) the configured
managed pipeline from them, and waits for the platform to finish ingesting.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from llama_index.core import SimpleDirectoryReader

from cirrus_rag.app.container import build_container
from cirrus_rag.config import GlobalConfig


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a directory of documents into a managed cloud pipeline")

    parser.add_argument(
        "--input-dir",
        "-i",
        required=True,
        type=str,
        help="Directory containing the documents to ingest.",
    )

    parser.add_argument(
        "--config-file",
        "-c",
        required=False,
        type=str,
        default=os.environ.get("CIRRUS_CONFIG", str(REPO_ROOT / "config" / "config.yaml")),
        help="Path to the YAML configuration file (default: $CIRRUS_CONFIG or config/config.yaml).",
    )

    parser.add_argument(
        "--pipeline-name",
        "-n",
        required=False,
        type=str,
        default=None,
        help="Override cloud.name from config (optional).",
    )

    parser.add_argument(
        "--recursive",
        "-r",
        action="store_true",
        help="If set, also load files from subdirectories.",
    )

    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress progress output.",
    )

    return parser.parse_args()


def main() -> None:
    args = parse_args()

    cfg = GlobalConfig.load(args.config_file)
    if args.pipeline_name:
        cloud_cfg = cfg.raw.get("cloud")
        if not isinstance(cloud_cfg, dict):
            raise TypeError("'cloud' config must be a mapping to override name.")
        cloud_cfg["name"] = args.pipeline_name

    container = build_container(cfg)

    input_dir = Path(args.input_dir).expanduser().resolve()
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")

    print(f"Loading documents from {input_dir}...")
    documents = SimpleDirectoryReader(str(input_dir), recursive=args.recursive).load_data()
    print(f"Loaded {len(documents)} document(s). Creating pipeline {container.cloud_settings['name']!r}...")

    container.ingest(documents, verbose=not args.quiet)

    print("Ingestion complete!")


if __name__ == "__main__":
    main()
