"""
Recompute top actor and director profiles for a page of users.
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

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def run(limit: int, offset: int) -> dict:
    result = BatchService(SessionLocal).compute_all_person_profiles(limit=limit, offset=offset)
    logger.info(
        f"✓ Person profiles: {result['processed']} users, {result['computed']} profiles, "
        f"{result['error_count']} errors in {result['duration']:.1f}s"
    )
    return result


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Recompute user person profiles")
    parser.add_argument("--limit", type=int, default=50, help="Users to process (default: 50)")
    parser.add_argument("--offset", type=int, default=0, help="Pagination offset (default: 0)")
    args = parser.parse_args()

    if args.limit < 1 or args.offset < 0:
        logger.error("Error: --limit must be positive and --offset non-negative")
        sys.exit(1)

    try:
        return run(args.limit, args.offset)
    except Exception as e:
        logger.error(f"\n✗ Error computing person profiles: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
