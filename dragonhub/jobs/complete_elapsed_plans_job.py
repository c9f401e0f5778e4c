import argparse
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from dragonhub.core.settings import settings
from dragonhub.services.event_plan_store import SqlEventPlanStore
from dragonhub.services.event_plan_workflow import EventPlanWorkflow
from dragonhub.services.plan_access import SqlPlanAccess

logger = logging.getLogger("app.jobs")


def run_complete_elapsed_plans(db: Session, now: Optional[datetime] = None) -> List[int]:
    """Complete every approved plan, across all schools, whose event date has passed."""
    workflow = EventPlanWorkflow(
        store=SqlEventPlanStore(db, school_id=None),
        access=SqlPlanAccess(db, None, settings.CURRENT_SCHOOL_YEAR),
        approval_threshold=settings.EVENT_PLAN_APPROVAL_THRESHOLD,
        allow_resubmit=settings.EVENT_PLAN_ALLOW_RESUBMIT,
    )
    completed = workflow.complete_elapsed_plans(now)
    logger.info("event_plans.completed_elapsed", extra={"plan_ids": completed})
    return completed


def main() -> None:
    from db import SessionLocal
    from dragonhub.core.logging_utils import configure_logging

    parser = argparse.ArgumentParser(
        description="Mark approved event plans past their date as completed."
    )
    parser.add_argument("--now", default=None, help="ISO timestamp to use as the cutoff (UTC)")
    args = parser.parse_args()

    configure_logging(settings)
    now = datetime.fromisoformat(args.now) if args.now else None
    db = SessionLocal()
    try:
        completed = run_complete_elapsed_plans(db, now)
    finally:
        db.close()
    print(f"Completed {len(completed)} event plan(s)")


if __name__ == "__main__":
    main()
