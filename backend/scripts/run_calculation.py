#!/usr/bin/env python3
"""
Run an electrical or water demand calculation for an inventory JSON file and
print the report as JSON.

Usage:
    python scripts/run_calculation.py water inventory.json [--policy-id 3] [--flush tank]
    python scripts/run_calculation.py electrical inventory.json [--guideline "MSEDCL 2016"]
"""

import os
import sys
import json
import argparse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import setup_logging
from database import make_engine
from models.enums import FlushSystemType
from models.schemas import ElectricalOptions, WaterOptions
from services.calculation_service import DemandCalculationService
from services.error_types import DemandEngineError
from services.policy_resolver import GuidelineRef, PolicyRef
from services.policy_store import SQLPolicyStore

logger = setup_logging()


def run(args) -> dict:
    with open(args.inventory) as f:
        inventory = json.load(f)

    service = DemandCalculationService(SQLPolicyStore(make_engine(args.database_url)))

    if args.utility == 'electrical':
        ref = PolicyRef(args.policy_id) if args.policy_id is not None else GuidelineRef(args.guideline)
        options = {'region': args.region}
        if args.power_factor is not None:
            options['power_factor'] = args.power_factor
        report = service.calculate_electrical_load(inventory, ref, ElectricalOptions(**options))
    else:
        options = {'flush_system_type': FlushSystemType(args.flush)}
        if args.tank_depth is not None:
            options['tank_depth_m'] = args.tank_depth
        report = service.calculate_water_demand(inventory, PolicyRef(args.policy_id), WaterOptions(**options))

    if not report.is_persistable:
        logger.warning("Report is based on a draft policy and is for preview only")
    return report.model_dump(mode='json')


def main():
    parser = argparse.ArgumentParser(description='Run a demand calculation')
    parser.add_argument('utility', choices=['electrical', 'water'])
    parser.add_argument('inventory', help='Path to the inventory JSON file')
    parser.add_argument('--database-url', help='Policy store URL (defaults to DATABASE_URL)')
    parser.add_argument('--policy-id', type=int, help='Explicit policy version id')
    parser.add_argument('--guideline', help='Electrical guideline label')
    parser.add_argument('--region', help='State used to filter transformer ratings')
    parser.add_argument('--power-factor', type=float)
    parser.add_argument('--flush', choices=[t.value for t in FlushSystemType], default=FlushSystemType.valve.value)
    parser.add_argument('--tank-depth', type=float, help='Storage tank depth in metres')

    args = parser.parse_args()
    try:
        report = run(args)
    except DemandEngineError as e:
        print(json.dumps({'error': type(e).__name__, 'message': e.message, 'details': e.details},
                         indent=2, default=str), file=sys.stderr)
        sys.exit(1)

    print(json.dumps(report, indent=2))


if __name__ == '__main__':
    main()
