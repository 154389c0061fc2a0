#!/usr/bin/env python3
"""
Create the policy store tables and load the reference policy data:
MEP-21 / Policy 25 water rates and the MSEDCL 2016 electrical guideline.

Usage:
    python scripts/seed_policies.py [--database-url URL] [--activate] [--project-id P-1]
"""

import os
import sys
import argparse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import setup_logging
from database import create_db_and_tables, make_engine
from services.policy_seed import seed_msedcl_guideline, seed_water_policy
from services.policy_store import (
    ELECTRICAL_GUIDELINE_STANDARD,
    PHE_POLICY_STANDARD,
    SQLPolicyStore,
)

logger = setup_logging()


def seed(database_url=None, activate=False, project_id=None):
    engine = make_engine(database_url)
    create_db_and_tables(engine)
    store = SQLPolicyStore(engine)

    guideline = seed_msedcl_guideline(store)
    version = seed_water_policy(store, activate=activate)

    if project_id:
        store.select_standard(project_id, PHE_POLICY_STANDARD, standard_ref_id=version.id)
        store.select_standard(project_id, ELECTRICAL_GUIDELINE_STANDARD, standard_value=guideline)
        logger.info(f"Project {project_id} now uses policy version {version.id} and {guideline}")

    logger.info(f"Policy version {version.id}: status={version.status.value}, default={version.is_default}")
    return version


def main():
    parser = argparse.ArgumentParser(description='Seed reference policy and guideline data')
    parser.add_argument(
        '--database-url',
        help='Policy store URL (defaults to DATABASE_URL)'
    )
    parser.add_argument(
        '--activate',
        action='store_true',
        help='Activate the seeded water policy and make it the default'
    )
    parser.add_argument(
        '--project-id',
        help='Also record the seeded policy and guideline as this project\'s selection'
    )

    args = parser.parse_args()
    seed(args.database_url, args.activate, args.project_id)


if __name__ == '__main__':
    main()
