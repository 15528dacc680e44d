"""
CLI entrypoint for Job Taxonomy.

Provides commands for ingesting, classifying, correcting and reporting.
"""

import sys
import json
import argparse
import traceback
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from storage import init_db, insert_job_if_new, get_classification_statistics
from jobtaxonomy.classify import JobClassifier
from jobtaxonomy.config import DEFAULT_CONFIG, load_config
from jobtaxonomy.corrections import CorrectionStore, RemoteCategoryClient
from jobtaxonomy.exceptions import JobTaxonomyError
from jobtaxonomy.learning import FeedbackRecorder, LearningEngine
from jobtaxonomy.reports import flatten_insights, flatten_stats, write_report_csv, write_report_json
from jobtaxonomy.taxonomy import TaxonomyStore, load_seed

DEFAULT_DB = "data/db/jobtaxonomy.sqlite3"


def _load_runtime(args):
    """Open the database and build the taxonomy store and learning engine."""
    config = load_config(args.config) if args.config else DEFAULT_CONFIG
    seed = load_seed(args.seed) if args.seed else None
    conn = init_db(args.db)
    taxonomy = TaxonomyStore(seed)
    engine = LearningEngine(taxonomy, config, conn=conn)
    return conn, taxonomy, engine, config


def ingest_command(args) -> int:
    """
    Execute the ingest command (one JSON job per line).

    Returns:
        Exit code (0 for success, 1 for error)
    """
    try:
        with open(args.input, "r", encoding="utf-8") as f:
            lines = [line for line in f if line.strip()]
    except OSError as e:
        print(f"[ERROR] Failed to read {args.input}: {e}")
        return 1

    print(f"[INFO] Read {len(lines)} job record(s) from: {args.input}")

    if args.dry_run:
        print("[DRY-RUN] Jobs not written to database")
        return 0

    conn = init_db(args.db)
    inserted = skipped = errors = 0

    try:
        for number, line in enumerate(lines, start=1):
            try:
                job = json.loads(line)
                if insert_job_if_new(conn, job):
                    inserted += 1
                else:
                    skipped += 1
            except (ValueError, TypeError) as e:
                print(f"   [WARN] Line {number}: {e}")
                errors += 1
    finally:
        conn.close()

    print(f"[OK] Inserted: {inserted}, already stored: {skipped}, errors: {errors}")
    return 0


def classify_command(args) -> int:
    """
    Execute the classify command.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    try:
        conn, taxonomy, engine, config = _load_runtime(args)
    except JobTaxonomyError as e:
        print(f"[ERROR] {e}")
        return 1
    conn.close()

    classifier = JobClassifier(args.db, taxonomy, config)

    try:
        classifier.connect()

        stats_before = get_classification_statistics(classifier.conn)
        print(f"[INFO] Total jobs in database: {stats_before['total_jobs']}")
        print(f"[INFO] Pending classification: {stats_before['pending_count']}")
        print(f"[INFO] Already classified: {stats_before['classified_count']}")

        print(f"\n[INFO] Starting classification (dry-run={args.dry_run})")

        results = classifier.classify_batch(
            limit=args.limit,
            reprocess=args.reprocess,
            dry_run=args.dry_run,
        )

        print("\n" + "=" * 60)
        print("CLASSIFICATION SUMMARY")
        print("=" * 60)

        print(f"\nProcessed: {results['processed']}")
        print(f"[INFO] Needs review: {results['needs_review']}")
        print(f"[INFO] Fallback: {results['fallback']}")
        print(f"[FAIL] Errors: {results['errors']}")

        for category_id, count in sorted(results["by_category"].items(), key=lambda kv: (-kv[1], kv[0])):
            print(f"   {category_id}: {count}")

        if not args.dry_run and results["needs_review"] > 0:
            print("\n[INFO] Exporting review candidates to CSV...")
            classifier.export_review_to_csv(
                export_dir=args.export_dir,
                export_limit=args.export_limit,
            )

        classifier.disconnect()
        return 0

    except KeyboardInterrupt:
        print("\n\n[INTERRUPTED] Classification cancelled by user")
        classifier.disconnect()
        return 130

    except Exception as e:
        print(f"\n[ERROR] Classification failed: {e}")
        traceback.print_exc()
        classifier.disconnect()
        return 1


def feedback_command(args) -> int:
    """
    Execute the feedback command.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    try:
        conn, taxonomy, engine, config = _load_runtime(args)
        remote = RemoteCategoryClient.from_env()
    except JobTaxonomyError as e:
        print(f"[ERROR] {e}")
        return 1

    recorder = FeedbackRecorder(conn, engine, CorrectionStore(conn, remote=remote))

    try:
        actions = recorder.submit(
            args.job_id,
            args.category,
            user_id=args.user,
            reason=args.reason,
        )
        if not actions:
            print("[INFO] Feedback produced no learning action")
        for action in actions:
            print(f"[OK] {action.type.display_name}: {action.description} (confidence {action.confidence:.2f})")
        return 0

    except KeyboardInterrupt:
        print("\n\n[INTERRUPTED] Feedback cancelled by user")
        return 130

    except (KeyError, JobTaxonomyError) as e:
        print(f"[ERROR] Feedback failed: {e}")
        return 1

    finally:
        conn.close()


def approve_command(args) -> int:
    """Execute the approve command for a pending dictionary update."""
    try:
        conn, taxonomy, engine, config = _load_runtime(args)
    except JobTaxonomyError as e:
        print(f"[ERROR] {e}")
        return 1

    try:
        if args.list:
            pending = engine.pending_updates()
            if not pending:
                print("[INFO] No pending updates")
            for update in pending:
                terms = list(update.new_core_keywords) + list(update.new_support_keywords)
                terms += [f"{a} + {b}" for a, b in update.new_context_pairs]
                print(f"   {update.id}  {update.category_id}  {update.confidence:.2f}  {', '.join(terms)}")
            return 0

        if not args.update_id:
            print("[ERROR] Provide an update id or --list")
            return 1

        action = engine.approve_pending_update(args.update_id, approved_by=args.user)
        print(f"[OK] {action.description}")
        return 0

    except JobTaxonomyError as e:
        print(f"[ERROR] Approval failed: {e}")
        return 1

    finally:
        conn.close()


def stats_command(args) -> int:
    """
    Execute the stats command.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    try:
        conn, taxonomy, engine, config = _load_runtime(args)
    except JobTaxonomyError as e:
        print(f"[ERROR] {e}")
        return 1

    try:
        db_stats = get_classification_statistics(conn)
        stats = engine.get_stats()
        insights = engine.get_learning_insights()

        print("\n" + "=" * 60)
        print("LEARNING SUMMARY")
        print("=" * 60)

        print(f"\nJobs: {db_stats['total_jobs']} (classified {db_stats['classified_count']}, "
              f"review {db_stats['review_count']}, avg confidence {db_stats['avg_confidence']})")
        print(f"Feedback: {stats.total_feedback} "
              f"({stats.total_corrections} corrections, {stats.total_confirmations} confirmations)")
        print(f"Patterns: {stats.total_patterns}")
        print(f"Updates applied: {stats.total_updates} (auto {stats.auto_applied_updates}), "
              f"pending: {stats.pending_updates}")
        print(f"Accuracy improvement: {insights.accuracy_improvement:+.2%}")

        for issue in insights.issues:
            print(f"[WARN] {issue}")

        if args.export_dir:
            if args.format == "json":
                write_report_json(stats, insights, args.export_dir)
            else:
                write_report_csv(flatten_stats(stats) + flatten_insights(insights), args.export_dir)

        return 0

    finally:
        conn.close()


def export_taxonomy_command(args) -> int:
    """Write the current (learned) taxonomy to a YAML file."""
    try:
        conn, taxonomy, engine, config = _load_runtime(args)
    except JobTaxonomyError as e:
        print(f"[ERROR] {e}")
        return 1

    try:
        taxonomy.save(args.output)
        learned = taxonomy.learned_terms()
        print(f"[EXPORT] Taxonomy written to: {args.output}")
        print(f"[INFO] Categories with learned terms: {len(learned)}")
        return 0
    except OSError as e:
        print(f"[ERROR] Failed to write {args.output}: {e}")
        return 1
    finally:
        conn.close()


def reset_learning_command(args) -> int:
    """Clear all learned data and restore the seed taxonomy."""
    if not args.yes:
        print("[ERROR] Refusing to clear learning data without --yes")
        return 1

    try:
        conn, taxonomy, engine, config = _load_runtime(args)
    except JobTaxonomyError as e:
        print(f"[ERROR] {e}")
        return 1

    try:
        engine.clear_all_data(confirm=True)
        return 0
    except Exception as e:
        print(f"[ERROR] Reset failed: {e}")
        return 1
    finally:
        conn.close()


def _add_common_arguments(parser) -> None:
    parser.add_argument(
        "--db",
        type=str,
        default=DEFAULT_DB,
        help=f"Path to SQLite database (default: {DEFAULT_DB})",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to classifier config YAML",
    )

    parser.add_argument(
        "--seed",
        type=str,
        help="Path to seed taxonomy YAML (default: bundled seed)",
    )


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Job Taxonomy - Sector Classification with Adaptive Learning",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load jobs and classify them
  jobtaxonomy ingest --input jobs.jsonl
  jobtaxonomy classify --limit 500

  # Correct a classification
  jobtaxonomy feedback 1234 digital-technology --user reviewer1 --reason "Software role"

  # Review pending keyword suggestions
  jobtaxonomy approve --list

  # Export learning report
  jobtaxonomy stats --export-dir data/reports --format json

Environment Variables:
  JOBTAXONOMY_API_URL       Jobs API root for remote corrections (optional)
  JOBTAXONOMY_API_TIMEOUT   Per-request timeout in seconds (default: 10)
  JOBTAXONOMY_API_RETRIES   Attempts per remote update (default: 3)
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Load jobs from a JSONL file")
    ingest_parser.add_argument("--input", type=str, required=True, help="JSONL file with one job per line")
    ingest_parser.add_argument("--db", type=str, default=DEFAULT_DB, help=f"Path to SQLite database (default: {DEFAULT_DB})")
    ingest_parser.add_argument("--dry-run", action="store_true", help="Read without writing to database")

    # classify command
    classify_parser = subparsers.add_parser("classify", help="Classify stored jobs")
    _add_common_arguments(classify_parser)
    classify_parser.add_argument("--limit", type=int, default=500, help="Maximum jobs to classify (default: 500)")
    classify_parser.add_argument("--reprocess", action="store_true", help="Reprocess already-classified jobs")
    classify_parser.add_argument("--dry-run", action="store_true", help="Classify without writing to database")
    classify_parser.add_argument("--export-dir", type=str, default="data/review", help="CSV export directory (default: data/review)")
    classify_parser.add_argument("--export-limit", type=int, default=100, help="Maximum review rows to export (default: 100)")

    # feedback command
    feedback_parser = subparsers.add_parser("feedback", help="Correct or confirm a job's category")
    _add_common_arguments(feedback_parser)
    feedback_parser.add_argument("job_id", help="Job identifier")
    feedback_parser.add_argument("category", help="Correct category id")
    feedback_parser.add_argument("--user", type=str, help="Reviewer id")
    feedback_parser.add_argument("--reason", type=str, default="", help="Reason for the correction")

    # approve command
    approve_parser = subparsers.add_parser("approve", help="Approve a pending keyword update")
    _add_common_arguments(approve_parser)
    approve_parser.add_argument("update_id", nargs="?", help="Pending update id")
    approve_parser.add_argument("--list", action="store_true", help="List pending updates")
    approve_parser.add_argument("--user", type=str, help="Approver id")

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show learning statistics")
    _add_common_arguments(stats_parser)
    stats_parser.add_argument("--export-dir", type=str, help="Write a report to this directory")
    stats_parser.add_argument("--format", choices=["csv", "json"], default="csv", help="Report format (default: csv)")

    # export-taxonomy command
    export_parser = subparsers.add_parser("export-taxonomy", help="Export the learned taxonomy as YAML")
    _add_common_arguments(export_parser)
    export_parser.add_argument("--output", type=str, default="data/taxonomy/learned_taxonomy.yaml", help="Output YAML path")

    # reset-learning command
    reset_parser = subparsers.add_parser("reset-learning", help="Clear learned data and restore the seed taxonomy")
    _add_common_arguments(reset_parser)
    reset_parser.add_argument("--yes", action="store_true", help="Confirm the reset")

    args = parser.parse_args()

    commands = {
        "ingest": ingest_command,
        "classify": classify_command,
        "feedback": feedback_command,
        "approve": approve_command,
        "stats": stats_command,
        "export-taxonomy": export_taxonomy_command,
        "reset-learning": reset_learning_command,
    }

    if not args.command:
        parser.print_help()
        return 1

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
