#!/usr/bin/env python
"""Run a score and ranking batch by hand.

Usage:
    python scripts/update_scores.py [config.yaml]

Reads CRON_SECRET and PILLAR_RANKER_* from the environment or a .env file.
"""

import asyncio
import os
import sys

from dotenv import load_dotenv

from pillar_ranker.core.config import EngineConfig, load_config
from pillar_ranker.services.reporting import render_batch_summary
from pillar_ranker.trigger import run_score_and_ranking_batch

load_dotenv()


async def main() -> int:
    config = load_config(sys.argv[1]) if len(sys.argv) > 1 else EngineConfig.from_env()
    print(f"Updating scores in {config.environment} ({config.database_url})")

    result = await run_score_and_ranking_batch(config, credential=os.environ.get("CRON_SECRET"))
    print(render_batch_summary(result))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
