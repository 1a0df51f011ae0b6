#!/usr/bin/env python3
"""Validate a content index and report what a journey would see.

Usage:
    python scripts/validate_content_index.py [path]
    python scripts/validate_content_index.py --url https://cdn.example.com/content_index.json
"""

import argparse
import asyncio
import sys
from pathlib import Path

from clarity.content.repository import ContentRepository
from clarity.content.sources import FileContentSource, HttpContentSource
from clarity.core.config import routing_config
from clarity.services.retry_policy import RetryPolicy

MINING_TYPES = ("neutralize", "commonGround", "dataExtraction")


async def main(args: argparse.Namespace) -> int:
    if args.url:
        source = HttpContentSource(args.url, timeout=args.timeout)
    else:
        source = FileContentSource(Path(args.path))

    # No retries: a broken index should fail loudly here.
    repository = ContentRepository(source, RetryPolicy(max_retries=0), fetch_timeout=args.timeout)
    await repository.load_index()

    if repository.fallback_mode:
        print(f"✗ Could not load {source.describe()}; fallback content would be used")
        return 1

    stats = await repository.get_stats()
    print(f"✓ Loaded version {stats.version}: {stats.total_entries} entries, {stats.total_chunks} chunks")

    problems = 0
    mapped = set(routing_config.label_subtopics.values())

    for category in await repository.get_categories():
        subcategories = await repository.get_subcategories(category)
        palette = await repository.get_emotion_palette(category)
        print(f"\n{category}: {len(subcategories)} subcategories, {len(palette)} emotions")

        for subcategory in subcategories:
            counts = [
                len(await repository.get_mining_prompts(category, t, subcategory))
                for t in MINING_TYPES
            ]
            levels = await repository.get_hierarchical_replacement_thoughts(category, subcategory)
            empty_levels = [n for n in range(1, 5) if not levels.level(n)]

            marker = "✓"
            if sum(counts) == 0:
                marker = "✗"
                problems += 1
            print(
                f"  {marker} {subcategory}: prompts={counts} "
                f"empty_levels={empty_levels or '-'} "
                f"classifier_mapped={'yes' if subcategory in mapped else 'no'}"
            )

        triggers = await repository.get_keyword_triggers(category)
        for subtopic, _ in triggers:
            if subtopic not in subcategories:
                print(f"  ✗ keyword triggers for unknown subcategory {subtopic!r}")
                problems += 1

    exercise = await repository.get_act_exercise(None)
    print(f"\nGeneric ACT exercise: {exercise.title} ({len(exercise.steps)} steps)")
    if len(exercise.steps) < routing_config.min_journey_steps:
        print(f"  (short exercises are padded to {routing_config.min_journey_steps} steps)")

    print(f"\n{'✓ No problems found' if problems == 0 else f'✗ {problems} problem(s) found'}")
    return 0 if problems == 0 else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Validate a content index")
    parser.add_argument("path", nargs="?", default="content/content_index.json")
    parser.add_argument("--url", help="Fetch the index over HTTP instead")
    parser.add_argument("--timeout", type=float, default=10.0)
    sys.exit(asyncio.run(main(parser.parse_args())))
