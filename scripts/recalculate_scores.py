#!/usr/bin/env python3
"""
Trigger the backend routine that rebuilds every row of public_scores.
Designed to run by hand or from a scheduled job with the service role key.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app_config import configure_logging, load_settings  # noqa: E402
from db_utils import build_admin_data_source  # noqa: E402
from leaderboard import load_leaderboard, summarize, trigger_recalculation  # noqa: E402


def main() -> int:
    settings = load_settings()
    configure_logging(settings.log_level)

    source = build_admin_data_source(settings)
    if source is None:
        print("❌ Error: Missing required environment variables")
        print("Required: SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY")
        return 1

    print("🔄 Recalculating public scores...")
    if not trigger_recalculation(source):
        print("❌ Recalculation failed, see log for details")
        return 1

    view = load_leaderboard(source)
    if view.error:
        print(f"⚠️ Recalculated, but the leaderboard could not be read back: {view.error}")
        return 0

    stats = summarize(view)
    print(f"✅ {stats['total_users']} users ranked, average score {stats['average_score']}")
    for level, count in stats["level_counts"].items():
        print(f"   {level}: {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
