"""
Seed the demo groups into the configured document store.

Writes the "Product Team Alpha" demo group and the featured "NBA's Best"
group, with generated ratings, so a fresh database has something to show.
"""

import sys
import logging
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def seed_demo_groups(seed: int = 42, captain_id: str = None, dry_run: bool = False) -> int:
    """Write the demo documents; existing documents with the same ids are replaced."""
    from src.scale.demo_data import DEMO_CAPTAIN_ID, build_demo_documents
    from src.scale.factory import create_document_store
    from src.utils.config import get_settings

    documents = build_demo_documents(seed=seed, captain_id=captain_id or DEMO_CAPTAIN_ID)
    total = sum(len(docs) for docs in documents.values())
    for collection, docs in documents.items():
        logger.info(f"  {collection}: {len(docs)} documents")

    if dry_run:
        logger.info(f"DRY RUN: would write {total} documents")
        return 0

    store = create_document_store(get_settings())
    for collection, docs in documents.items():
        for doc in docs:
            store.create(collection, doc["id"], doc)

    logger.info(f"Seeded {total} documents")
    return total


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Seed the Scale demo groups')
    parser.add_argument('--seed', type=int, default=42, help='Random seed for generated ratings')
    parser.add_argument('--captain', type=str, help='User id to make captain of the featured group')
    parser.add_argument('--dry-run', action='store_true', help='Show what would be written')
    args = parser.parse_args()

    seed_demo_groups(seed=args.seed, captain_id=args.captain, dry_run=args.dry_run)
