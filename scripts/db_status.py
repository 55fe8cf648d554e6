#!/usr/bin/env python3
"""Show DB record counts for the wizard tables."""
import sys
sys.path.insert(0, ".")

from app import create_app
from app.models import db

TABLES = [
    "users", "projects", "project_workflows", "step_responses",
    "data_flow_relationships",
]

app = create_app()
with app.app_context():
    total = 0
    for t in TABLES:
        c = db.session.execute(db.text(f"SELECT COUNT(*) FROM {t}")).scalar()
        total += c
        print(f"    {t:.<30} {c}")
    print(f"    {'TOTAL':.<30} {total}")

    active = db.session.execute(
        db.text("SELECT COUNT(*) FROM data_flow_relationships WHERE is_active")
    ).scalar()
    done = db.session.execute(
        db.text("SELECT COUNT(*) FROM project_workflows WHERE is_completed")
    ).scalar()
    print(f"    {'active data flows':.<30} {active}")
    print(f"    {'completed workflows':.<30} {done}")
