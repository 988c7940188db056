#!/usr/bin/env python3
"""
Agree Contract Auditor - Demo Runner

This script demonstrates the speculative analysis flow:
1. Load a sample contract full of known traps
2. Start the speculative analysis under the default context
3. Reconcile with the user context given on the command line
4. Output the risk report as Markdown

Usage:
    python run_demo.py                            # Run with default sample contract
    python run_demo.py --file contract.txt        # Run with custom contract
    python run_demo.py --entity-type corp_with_employees   # Force a recomputation
    python run_demo.py --verbose                  # Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

# ASCII art banner
BANNER = """
╔═════════════════════════════════════════════════════════╗
║   ⚖️  Agree Contract Auditor                             ║
║   Freelance Contract Risk Analysis                      ║
╚═════════════════════════════════════════════════════════╝
"""

_STATUS_EMOJI = {"critical": "🔴", "warning": "🟡", "clear": "🟢"}
_RISK_EMOJI = {"critical": "🔴", "high": "🟠", "medium": "🟡", "low": "🔵"}

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Send library logs to stderr, at DEBUG when verbose."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_args() -> argparse.Namespace:
    """Read the contract path and the user-context flags."""
    parser = argparse.ArgumentParser(
        description="Agree Contract Auditor - Analyze freelance contracts for legal risks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_demo.py                          Run with sample contract
  python run_demo.py -f my_contract.txt       Analyze custom contract
  python run_demo.py --role client            Analyze as the commissioning party
  python run_demo.py -v                       Verbose output
        """
    )
    parser.add_argument(
        "-f", "--file",
        type=Path,
        default=Path("data/sample_contract.txt"),
        help="Path to contract file (default: data/sample_contract.txt)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )
    parser.add_argument("--role", default="vendor", help="vendor or client")
    parser.add_argument(
        "--entity-type",
        default="individual",
        help="individual, one_person_corp or corp_with_employees"
    )
    parser.add_argument("--counterparty", default="unknown", help="Counterparty entity type")
    parser.add_argument("--capital", default="unknown", help="under_10m, 10m_to_300m or over_300m")
    parser.add_argument(
        "--expected-type",
        default="unknown",
        help="completion_of_work, best_efforts, nda or advisory"
    )
    return parser.parse_args()


def load_contract(file_path: Path) -> str:
    """
    Read a contract text file as UTF-8.

    Args:
        file_path: Location of the contract text.

    Returns:
        Contract text content.

    Raises:
        SystemExit: When the file is missing or unreadable.
    """
    try:
        content = file_path.read_text(encoding="utf-8")
        logger.info(f"✅ Loaded contract: {file_path} ({len(content):,} characters)")
        return content
    except FileNotFoundError:
        logger.error(f"❌ File not found: {file_path}")
        sys.exit(1)
    except PermissionError:
        logger.error(f"❌ Permission denied: {file_path}")
        sys.exit(1)


async def run_analysis(contract_text: str, context: dict[str, str]):
    """
    Run the speculative flow end to end with the offline mock analyzer.

    Args:
        contract_text: Raw contract text to analyze.
        context: User context as entered on the command line.

    Returns:
        FinalAnalysis for the given context.
    """
    from agree_audit.ai_analysis import MockAnalyzer
    from agree_audit.cache import AnalysisCache
    from agree_audit.speculative import SpeculativeAnalyzer

    logger.info("🚀 Starting speculative analysis...")

    speculative = SpeculativeAnalyzer(MockAnalyzer(), cache=AnalysisCache())
    preview = speculative.start(contract_text)
    logger.info(f"⚡ Immediate preview: {preview.checkpoints.summary.message}")

    result = await speculative.reconcile(contract_text, context)
    if result.ai_error:
        logger.warning(f"⚠️  AI portion unavailable: {result.ai_error}")
    return result


def format_report(result) -> str:
    """Render a FinalAnalysis as a Markdown report."""
    rule_based = result.rule_based
    summary = rule_based.checkpoints.summary
    score = rule_based.score

    report_lines = [
        "# 📋 Contract Risk Report",
        "",
        f"**Score**: {score.score}/100 (grade {score.grade.value})",
        f"**Contract type**: {rule_based.contract_type.detected_type.value} "
        f"({rule_based.contract_type.confidence.value} confidence)",
        f"**Speculative result**: {'yes' if result.speculative else 'no'}",
        "",
        f"> {score.explanation}",
        "",
        "## ⚖️ Applicable Laws",
        "",
    ]
    for line in rule_based.law_explanations:
        report_lines.append(f"- {line}")
    report_lines.append("")

    report_lines.append("## 📋 Checkpoints")
    report_lines.append("")
    report_lines.append(summary.message)
    report_lines.append("")
    report_lines.append("| # | Checkpoint | Status | Finding |")
    report_lines.append("|---|------------|--------|---------|")
    for item in rule_based.checkpoints.items:
        emoji = _STATUS_EMOJI[item.status.value]
        report_lines.append(f"| {item.item_no} | {item.name} | {emoji} {item.status.value} | {item.title} |")
    report_lines.append("")

    if result.merged.risks:
        report_lines.append("## 🚨 Risks")
        report_lines.append("")
        for risk in result.merged.risks:
            emoji = _RISK_EMOJI[risk.risk_level.value]
            report_lines.append(f"{emoji} **{risk.risk_level.value.upper()}** [{risk.source.value}]: {risk.section_title}")
            if risk.original_text:
                report_lines.append(f"   - Text: _{risk.original_text[:100]}_")
            if risk.suggested_fix:
                report_lines.append(f"   - 💡 Fix: {risk.suggested_fix}")
            report_lines.append("")
    else:
        report_lines.append("## ✅ No Risks Found")
        report_lines.append("")

    art3 = rule_based.art3
    report_lines.append("## 📝 Freelance Act Article 3 Disclosure")
    report_lines.append("")
    report_lines.append(f"{art3.found}/{art3.total} items present ({art3.compliance_rate}%, {art3.overall_status.value})")
    report_lines.append("")

    return "\n".join(report_lines)


def print_report(report: str) -> None:
    """Print the Markdown report between rules."""
    print("\n" + "═" * 60)
    print(report)
    print("═" * 60 + "\n")


def main() -> NoReturn | None:
    """
    Run the demo from the command line.

    Steps:
    1. Parse CLI arguments
    2. Load contract text
    3. Run the speculative analysis and reconcile
    4. Display report
    """
    args = parse_args()
    setup_logging(args.verbose)

    print(BANNER)

    # Step 1: Load contract
    contract_text = load_contract(args.file)

    # Step 2: Run analysis
    context = {
        "userRole": args.role,
        "userEntityType": args.entity_type,
        "counterpartyEntityType": args.counterparty,
        "counterpartyCapital": args.capital,
        "expectedContractType": args.expected_type,
    }
    result = asyncio.run(run_analysis(contract_text, context))

    # Step 3: Display report
    print_report(format_report(result))

    logger.info("✅ Demo completed successfully!")
    return None


if __name__ == "__main__":
    main()
