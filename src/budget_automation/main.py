#!/usr/bin/env python3
"""
Command line entry point for the budget automation job
Usage: budget-automation [options] {run,approve,reject,pending,export} ...
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .amazon_ads import AmazonAdsClient
from .automation import BudgetAutomationService
from .config import RuntimeConfig, normalize_credentials
from .database import DatabaseConnector
from .demo import build_demo_service
from .exceptions import ConfigInvalid
from .telemetry import TelemetryClient


def setup_logging(level: str = 'INFO') -> None:
    """Setup logging configuration"""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def build_service(config: RuntimeConfig) -> BudgetAutomationService:
    """Wire the production collaborators from environment and stored settings"""
    db = DatabaseConnector()
    credentials = normalize_credentials(db.load_latest_settings())
    amazon = AmazonAdsClient(credentials, config)
    telemetry = TelemetryClient(config.to_dict())

    return BudgetAutomationService(
        settings_store=db,
        campaign_source=amazon,
        budget_writer=amazon,
        log_store=db,
        telemetry=telemetry,
        max_workers=config.max_workers,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Amazon Ads campaign budget automation')
    parser.add_argument('--config', '-c', default='config/budget_automation.json',
                        help='Runtime configuration file path')
    parser.add_argument('--log-level', '-l', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')
    parser.add_argument('--demo', action='store_true',
                        help='Use built-in sample campaigns and in-memory stores (approval mode)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    run_parser = subparsers.add_parser('run', help='Evaluate enabled campaigns once')
    run_parser.add_argument('--dry-run', action='store_true',
                            help='Evaluate without updating budgets or saving the log')
    run_parser.add_argument('--output', '-o', help='Also export the run log entries to this file')
    run_parser.add_argument('--format', '-f', choices=['json', 'csv'], default='json',
                            help='Export format')

    for name, help_text in (('approve', 'Approve a pending budget change'),
                            ('reject', 'Reject a pending budget change')):
        approval_parser = subparsers.add_parser(name, help=help_text)
        approval_parser.add_argument('entry_id', help='Automation log entry id')

    pending_parser = subparsers.add_parser('pending', help='List changes awaiting approval')
    pending_parser.add_argument('--limit', type=int, default=100)

    export_parser = subparsers.add_parser('export', help='Export recent automation log entries')
    export_parser.add_argument('output', help='Output file path')
    export_parser.add_argument('--format', '-f', choices=['json', 'csv'], default='json')
    export_parser.add_argument('--limit', type=int, default=1000)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    load_dotenv()

    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        config = RuntimeConfig.from_file(args.config)
        config.validate()
    except ConfigInvalid as e:
        logger.error(e.message)
        return 2

    if args.demo:
        logger.info("Demo mode: sample campaigns, nothing is written to Amazon or the database")
        service = build_demo_service(config)
    else:
        try:
            service = build_service(config)
        except ValueError as e:
            logger.error(f"Configuration error: {e}")
            logger.error("Please ensure DB_PASSWORD (or DATABASE_URL) and the Amazon API credentials are set, "
                         "or use --demo")
            return 2

    if args.command == 'run':
        result = service.run_evaluation(dry_run=args.dry_run)
        print(json.dumps(result.to_dict(), indent=2))
        if args.output and result.log_entries:
            directory = os.path.dirname(args.output)
            if directory:
                os.makedirs(directory, exist_ok=True)
            service.export_log(result.log_entries, args.output, args.format)
        return 1 if result.log_error else 0

    if args.command in ('approve', 'reject'):
        approval = service.resolve_approval(args.entry_id, approved=args.command == 'approve')
        print(json.dumps({'success': approval.success, 'message': approval.message,
                          'error': approval.error}))
        return 0 if approval.success else 1

    if args.command == 'pending':
        pending = service.list_pending(limit=args.limit)
        print(json.dumps([entry.to_dict() for entry in pending], indent=2))
        return 0

    if args.command == 'export':
        entries = service.log_store.list_log_entries(limit=args.limit)
        service.export_log(entries, args.output, args.format)
        return 0

    return 2


if __name__ == '__main__':
    sys.exit(main())
