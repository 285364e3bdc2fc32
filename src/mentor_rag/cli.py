"""Command-line interface: ingest, search, stats and re-embed."""

import argparse
import inspect
import json
import logging
import sys
from typing import Optional

from loguru import logger

from .config import Config
from .rag import (
    ArchiveLoadError,
    GeminiEmbedderAdapter,
    HybridRetriever,
    load_knowledge_base,
    reembed_knowledge_base,
    replace_archive,
)
from .rag.ingestion import CharacterChunker, ingest_directory
from .rag.retrieval import SynonymTable

PREVIEW_CHARS = 180


class InterceptHandler(logging.Handler):
    """Route standard-library log records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru as the single sink for library and CLI logs."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>",
        level=level,
    )
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)


def build_embedder() -> Optional[GeminiEmbedderAdapter]:
    """Create the Gemini adapter, or None when no API key is configured."""
    if not Config.GEMINI_API_KEY:
        return None
    return GeminiEmbedderAdapter(
        api_key=Config.GEMINI_API_KEY,
        model=Config.EMBEDDING_MODEL,
        timeout=Config.EMBEDDING_TIMEOUT,
        max_retries=Config.EMBEDDING_MAX_RETRIES,
        retry_base_delay=Config.EMBEDDING_RETRY_BASE_DELAY,
        batch_size=Config.EMBEDDING_BATCH_SIZE,
        calls_per_minute=Config.EMBEDDING_CALLS_PER_MINUTE,
    )


def load_synonyms() -> SynonymTable:
    try:
        return SynonymTable.from_yaml(Config.SYNONYMS_PATH)
    except FileNotFoundError:
        logger.warning(f"Synonyms file not found at {Config.SYNONYMS_PATH}, expansion disabled")
        return SynonymTable.empty()


def load_kb(kb_dir: str):
    return load_knowledge_base(
        kb_dir,
        synonyms=load_synonyms(),
        pattern=Config.ARCHIVE_PATTERN,
        max_doc_tokens=Config.MAX_DOC_TOKENS,
        k1=Config.BM25_K1,
        b=Config.BM25_B,
    )


def cmd_ingest(args: argparse.Namespace) -> int:
    embedder = build_embedder()
    if embedder is None:
        logger.error("Missing GEMINI_API_KEY env var")
        return 1

    report = ingest_directory(
        args.src,
        args.out,
        embedder,
        chunker=CharacterChunker(Config.CHUNK_SIZE, Config.CHUNK_OVERLAP),
        batch_size=Config.EMBEDDING_BATCH_SIZE,
        prefix=Config.ARCHIVE_PREFIX,
        shard_size=Config.ARCHIVE_SHARD_SIZE,
        decimals=Config.EMBEDDING_DECIMALS,
    )
    if report.chunks == 0:
        logger.info(f"No .txt files found in {args.src}. Add some first.")
    print(json.dumps({
        "documents": report.documents,
        "chunks": report.chunks,
        "embedded": report.embedded,
        "skipped": report.skipped,
        "shards": [str(p) for p in report.shards],
    }, ensure_ascii=False, indent=2))
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    kb = load_kb(args.kb_dir)
    embedder = None if args.no_embed else build_embedder()
    retriever = HybridRetriever(
        kb,
        embedder=embedder,
        preselect_cap=Config.SEARCH_PRESELECT_CAP,
        fallback_score=Config.SEARCH_FALLBACK_SCORE,
    )
    results = retriever.search(args.query, k=args.k, k_kw=args.k_kw, alpha=args.alpha)
    print(json.dumps({
        "query": args.query,
        "results": [
            {
                "id": r.id,
                "source": r.source,
                "score": r.score,
                "keyword_score": r.keyword_score,
                "semantic_score": r.semantic_score,
                "preview": r.text[:PREVIEW_CHARS],
            }
            for r in results
        ],
    }, ensure_ascii=False, indent=2))
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    kb = load_kb(args.kb_dir)
    print(json.dumps(kb.stats(), ensure_ascii=False, indent=2))
    return 0


def cmd_reembed(args: argparse.Namespace) -> int:
    embedder = build_embedder()
    if embedder is None:
        logger.error("Missing GEMINI_API_KEY env var")
        return 1

    kb = load_kb(args.kb_dir)
    updated = reembed_knowledge_base(kb, embedder)
    # The target holds exactly the new shards afterwards, even when it is --kb-dir
    shards = replace_archive(
        updated.chunks,
        args.out or args.kb_dir,
        pattern=Config.ARCHIVE_PATTERN,
        prefix=Config.ARCHIVE_PREFIX,
        shard_size=Config.ARCHIVE_SHARD_SIZE,
        decimals=Config.EMBEDDING_DECIMALS,
    )
    logger.info(f"Wrote {len(shards)} shards; usage: {embedder.get_usage()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mentor-rag",
        description="Hybrid lexical + semantic search over a knowledge base",
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    sub = parser.add_subparsers(dest="cmd")

    p_ingest = sub.add_parser("ingest", help="Build archive shards from .txt files")
    p_ingest.add_argument("--src", default=Config.KB_DIR, help="Directory with .txt sources")
    p_ingest.add_argument("--out", default=".", help="Directory for the archive shards")
    p_ingest.set_defaults(func=cmd_ingest)

    p_search = sub.add_parser("search", help="Run a hybrid search")
    p_search.add_argument("query")
    p_search.add_argument("--kb-dir", default=Config.KB_DIR)
    p_search.add_argument("--k", type=int, default=Config.SEARCH_TOP_K)
    p_search.add_argument("--k-kw", type=int, default=Config.SEARCH_KEYWORD_CANDIDATES)
    p_search.add_argument("--alpha", type=float, default=Config.SEARCH_ALPHA)
    p_search.add_argument("--no-embed", action="store_true", help="Skip the query embedding")
    p_search.set_defaults(func=cmd_search)

    p_stats = sub.add_parser("stats", help="Show knowledge base statistics")
    p_stats.add_argument("--kb-dir", default=Config.KB_DIR)
    p_stats.set_defaults(func=cmd_stats)

    p_reembed = sub.add_parser("reembed", help="Regenerate every chunk embedding")
    p_reembed.add_argument("--kb-dir", default=Config.KB_DIR)
    p_reembed.add_argument("--out", default=None, help="Output directory (default: --kb-dir)")
    p_reembed.set_defaults(func=cmd_reembed)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the mentor-rag command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level.upper())

    if not getattr(args, "func", None):
        parser.print_help()
        return 2

    try:
        Config.validate()
        return args.func(args)
    except ValueError as e:
        logger.error(str(e))
        return 1
    except ArchiveLoadError as e:
        logger.error(f"Knowledge base could not be loaded: {e}")
        return 1
