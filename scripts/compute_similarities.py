"""
Recompute stored user similarity scores.
Processes one page of users per run; schedule it with increasing offsets.
"""

import sys
from pathlib import Path

# Add parent directory to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

import argparse
import logging

from moviematch_recommendation_service.models.database import SessionLocal
from moviematch_recommendation_service.services.batch_service import BatchService
from moviematch_recommendation_service.services.batching import ChunkedExecutor

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def log_result(title: str, result: dict) -> None:
    logger.info("\n" + "=" * 70)
    logger.info(title)
    logger.info("=" * 70)
    logger.info(f"Processed: {result['processed']}")
    logger.info(f"Computed:  {result['computed']}")
    logger.info(f"Errors:    {result['error_count']}")
    logger.info(f"Duration:  {result['duration']:.1f}s")
    for error in result["errors"]:
        logger.info(f"  ✗ {error}")


def run(limit: int, offset: int, chunk_size: int | None = None, workers: int | None = None) -> dict:
    """
    Run the similarity batch job.

    Args:
        limit: Users to process
        offset: Pagination offset
        chunk_size: Users per chunk (config default if None)
        workers: Concurrent users per chunk (config default if None)

    Returns:
        Batch result dict
    """
    service = BatchService(SessionLocal, executor=ChunkedExecutor(chunk_size=chunk_size, max_workers=workers))
    result = service.compute_all_similarity_scores(limit=limit, offset=offset)
    log_result("✓ SIMILARITY COMPUTATION COMPLETE", result)
    return result


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Recompute user similarity scores")
    parser.add_argument("--limit", type=int, default=100, help="Users to process (default: 100)")
    parser.add_argument("--offset", type=int, default=0, help="Pagination offset (default: 0)")
    parser.add_argument("--chunk-size", type=int, default=None, help="Users per chunk")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent users per chunk")

    args = parser.parse_args()

    if args.limit < 1 or args.offset < 0:
        logger.error("Error: --limit must be positive and --offset non-negative")
        sys.exit(1)

    logger.info("=" * 70)
    logger.info("SIMILARITY COMPUTATION")
    logger.info("=" * 70)
    logger.info(f"Limit: {args.limit}, offset: {args.offset}")

    try:
        return run(args.limit, args.offset, args.chunk_size, args.workers)
    except Exception as e:
        logger.error(f"\n✗ Error during similarity computation: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
