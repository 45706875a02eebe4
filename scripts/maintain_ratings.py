"""
Rating integrity maintenance.

Diagnoses ratings that point at missing items or placeholder members, fixes
them by name, converts placeholder members into items, and rewrites legacy
camelCase documents into the canonical field names.
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


def run_maintenance(command: str, group_id: str = None, dry_run: bool = False):
    """Run one maintenance command against the configured store."""
    from src.scale.factory import create_scale_app

    scale_app = create_scale_app()
    integrity = scale_app.integrity

    if command == 'diagnose':
        report = integrity.diagnose_ratings(group_id)
        logger.info(f"\n{'='*80}")
        logger.info("RATING DIAGNOSIS")
        logger.info(f"{'='*80}")
        logger.info(f"Objects: {report.total_objects}")
        logger.info(f"Placeholder members: {report.total_placeholders}")
        logger.info(f"Ratings: {report.total_ratings} ({report.valid_ratings} valid)")
        logger.info(f"Orphaned: {report.orphaned_ratings}")
        logger.info(f"Pointing to placeholders: {report.ratings_pointing_to_placeholders}")
        logger.info(f"For deleted metrics: {report.ratings_for_deleted_metrics}")
        for sample in report.orphaned_rating_samples:
            logger.info(f"  orphan {sample.id}: target={sample.target_id} group={sample.group_id}")
        logger.info(report.message)
        return report

    if command == 'fix':
        report = integrity.fix_ratings()
        for fix in report.fixes:
            logger.info(f"  {fix.rating_id}: {fix.old_target_id} -> {fix.new_target_id} ({fix.matched_by_name})")
        for item in report.unfixable:
            logger.warning(f"  {item.rating_id}: {item.reason}")
        logger.info(report.message)
        return report

    if command == 'migrate':
        report = integrity.migrate_placeholder_members(dry_run=dry_run)
        logger.info(f"MIGRATION {'(DRY RUN)' if dry_run else 'COMPLETE'}")
        for item in report.migrated_items:
            logger.info(f"  {item.name} ({item.group_id}): {item.old_id} -> {item.new_id}")
        logger.info(f"Migrated {report.migrated_count} members, updated {report.ratings_updated} ratings")
        return report

    if command == 'canonicalize':
        counts = integrity.canonicalize_documents()
        for collection, count in sorted(counts.items()):
            logger.info(f"  {collection}: {count} documents rewritten")
        return counts

    raise ValueError(f"Unknown command: {command}")


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Scale rating integrity maintenance')
    parser.add_argument('command', choices=['diagnose', 'fix', 'migrate', 'canonicalize'])
    parser.add_argument('--group', type=str, help='Limit the diagnosis to one group')
    parser.add_argument('--dry-run', action='store_true', help='Show what would change without updating')
    args = parser.parse_args()

    run_maintenance(args.command, group_id=args.group, dry_run=args.dry_run)
