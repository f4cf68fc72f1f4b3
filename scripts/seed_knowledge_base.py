"""
Seed the knowledge base with reference psychology and career-guidance material.

Creates the standard partitions (SQL backend) and adds each reference document
to the default partition unless an entry with the same heading already exists.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from survey_backend.dependencies import get_knowledge_base
from survey_backend.knowledge import KnowledgeBase, NewEntryMetadata, NewKnowledgeEntry
from survey_backend.logging_config import configure_logging

logger = logging.getLogger(__name__)

SEED_SOURCE = "seed"

REFERENCE_DOCUMENTS = [
    """# Personality basics: MBTI

The Myers-Briggs Type Indicator sorts preferences along four axes:
1. Extraversion (E) vs Introversion (I): where energy comes from
2. Sensing (S) vs Intuition (N): how information is gathered
3. Thinking (T) vs Feeling (F): how decisions are made
4. Judging (J) vs Perceiving (P): how life is structured""",
    """# Personality basics: Big Five

The Big Five model is the most widely accepted trait model:
1. Openness: receptiveness to new experience
2. Conscientiousness: self-control and responsibility
3. Extraversion: social activity
4. Agreeableness: cooperation and trust
5. Neuroticism: emotional stability""",
    """# Behaviour styles: DISC

DISC describes four behavioural styles:
1. Dominance: directing and controlling
2. Influence: persuading and inspiring
3. Steadiness: stable and supportive
4. Conscientiousness: accurate and analytical""",
    """# Career guidance: Holland RIASEC

Holland's theory groups vocational interests into six types:
1. Realistic: hands-on, concrete tasks
2. Investigative: analysis and abstract problems
3. Artistic: creativity and expression
4. Social: helping and working with people
5. Enterprising: leading and persuading
6. Conventional: order, rules and execution""",
    """# Career guidance: work values

Work values are the motivations behind career choices:
- Achievement: success and recognition
- Security: stability and protection
- Relationships: people and teams
- Autonomy: independence and freedom
- Service: helping others and society""",
]


def _heading(content: str) -> str:
    return content.splitlines()[0].strip()


def seed(kb: KnowledgeBase, *, partition: str, dry_run: bool = False) -> int:
    """Add missing reference documents to ``partition``; returns how many were added."""
    existing = {_heading(entry.content) for entry in kb.get_entries(partition)}
    added = 0
    for content in REFERENCE_DOCUMENTS:
        heading = _heading(content)
        if heading in existing:
            logger.info("Skipping existing entry", extra={"heading": heading})
            continue
        if not dry_run:
            kb.add_entry(
                NewKnowledgeEntry(
                    content=content,
                    metadata=NewEntryMetadata(source=SEED_SOURCE, table=partition),
                )
            )
        added += 1
    return added


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Seed the knowledge base with reference documents"
    )
    parser.add_argument(
        "--partition",
        default=None,
        help="Target partition (defaults to KNOWLEDGE_DEFAULT_PARTITION)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many entries would be added without saving",
    )
    args = parser.parse_args()

    configure_logging("INFO")
    kb = get_knowledge_base()
    partition = args.partition or kb.default_partition
    added = seed(kb, partition=partition, dry_run=args.dry_run)
    logger.info("Seeded %d entries", added, extra={"partition": partition})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
