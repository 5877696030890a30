#!/usr/bin/env python3
"""
CLI Insight Report
Usage:
    python scripts/report.py                            # aggregated insight → stdout JSON
    python scripts/report.py --variant tracking         # use the tracking policy variant
    python scripts/report.py --output insight.json      # save to file
    python scripts/report.py --query "how can we save?" # local responder reply

Reads cost data through the same collector as the API (MOCK_AWS=true serves
the sample account).
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Add backend root to path so we can import cost_insight without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from cost_insight.core.exceptions import InvalidInput  # noqa: E402
from cost_insight.core.logging import configure_logging  # noqa: E402
from cost_insight.services.cost_collector import CostCollector  # noqa: E402
from cost_insight.services.insight_engine.engine import CostInsightEngine  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Print cost insights derived from the current AWS account.")
    parser.add_argument("--variant", help="Engine variant: standard | tracking (default: ENGINE_VARIANT)")
    parser.add_argument("--output", "-o", help="Output file path (default: stdout)")
    parser.add_argument("--query", "-q", help="Answer a question with the local responder instead of dumping JSON")
    args = parser.parse_args(argv)

    configure_logging(stream=sys.stderr)  # keep stdout clean for the report
    try:
        engine = CostInsightEngine.from_settings(variant=args.variant)
    except InvalidInput as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    insight = engine.aggregate(CostCollector().get_snapshot())

    if args.query:
        output = engine.respond(args.query, insight)
    else:
        output = json.dumps(insight.to_dict(), indent=2, default=str)

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Report written to {args.output}")
        print(f"  Variant         : {insight.variant}")
        print(f"  Spend MTD       : ${insight.total_spend_mtd:,.2f}")
        print(f"  Budget status   : {insight.budget.status.value}")
        print(f"  Savings / month : ${insight.total_monthly_savings:,.2f}")
        print(f"  Maturity        : {insight.maturity.tier.value}")
    else:
        print(output)

    if insight.error:
        print(f"Warning: cost data incomplete: {insight.error}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
