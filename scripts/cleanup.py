"""
Delete stale similarity scores and old recommendation log rows.
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


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(description="Retention cleanup")
    parser.add_argument(
        "--similarity-days", type=int, default=365, help="Keep similarity scores refreshed within N days"
    )
    parser.add_argument("--log-days", type=int, default=90, help="Keep recommendation log rows for N days")
    args = parser.parse_args()

    try:
        result = BatchService(SessionLocal).cleanup(
            similarity_max_age_days=args.similarity_days, log_max_age_days=args.log_days
        )
    except Exception as e:
        logger.error(f"\n✗ Cleanup failed: {e}", exc_info=True)
        sys.exit(1)

    logger.info(
        f"✓ Deleted {result['deleted_similarity_scores']} similarity scores, "
        f"{result['deleted_recommendation_logs']} log rows"
    )
    return result


if __name__ == "__main__":
    main()
