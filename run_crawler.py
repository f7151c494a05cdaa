"""
TikTok Video Crawler Runner

Orchestrates a crawl run:
1. Browser lifecycle (one session for the whole run)
2. Profiles -> video links -> video metadata + comment threads -> replies
3. Storage (SQLite) and optional CSV export
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from TT_Video_Crawler.src.config import CrawlerConfig
from TT_Video_Crawler.src.video_store_db import VideoStore
from TT_Video_Crawler.src.scraper_functions.session import BrowserSession
from TT_Video_Crawler.src.scraper_functions.crawlers import (
    CrawlError,
    crawl_comment_replies,
    crawl_profile,
    crawl_video,
    with_retry,
)
from export_to_sheet import export_videos


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def normalize_profile(entry: str, origin: str = 'https://www.tiktok.com') -> str:
    """'user', '@user' or a full URL -> profile URL"""
    entry = entry.strip()
    if entry.startswith('http'):
        return entry
    return f"{origin}/@{entry.lstrip('@')}"


def load_profile_urls(file_path: str, origin: str = 'https://www.tiktok.com') -> List[str]:
    """Load profiles from a text file, one per line; '#' and '//' lines are comments."""
    profiles = []
    file_path = Path(file_path)

    if not file_path.exists():
        logging.getLogger('Crawler').warning(f"Profile file not found: {file_path}")
        return profiles

    with open(file_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#') or line.startswith('//'):
                continue
            profiles.append(normalize_profile(line, origin))

    return profiles


def setup_logging(run_name: str, log_dir: str = "logs/", verbose: bool = False) -> logging.Logger:
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    log_file = Path(log_dir) / f"{run_name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)

    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    logging.getLogger('playwright').setLevel(logging.WARNING)

    return logging.getLogger('Crawler')


# ============================================================================
# MAIN CRAWL LOGIC
# ============================================================================

async def crawl_profiles(
    profile_urls: List[str],
    config: CrawlerConfig,
    verbose: bool = False,
    export_path: Optional[str] = None,
) -> Dict[str, Any]:

    logger = setup_logging("crawl", log_dir=config.log_dir, verbose=verbose)

    logger.info("=" * 70)
    logger.info("TIKTOK VIDEO CRAWLER")
    logger.info(f"Target Profiles: {len(profile_urls)}")
    logger.info(f"Max videos per profile: {config.max_videos_per_profile}")
    logger.info("=" * 70)

    run_stats = {
        "started_at": datetime.now().isoformat(),
        "profiles_processed": 0,
        "profiles_failed": 0,
        "videos_crawled": 0,
        "videos_failed": 0,
        "replies_saved": 0,
        "profile_summaries": {},
    }
    crawled_urls = []

    store = VideoStore(db_file=config.db_file)
    try:
        async with BrowserSession(config) as session:
            for i, profile_url in enumerate(profile_urls):
                logger.info(f"\n[{i+1}/{len(profile_urls)}] Processing: {profile_url}")
                run_stats["profiles_processed"] += 1
                if i > 0:
                    await asyncio.sleep(config.delay_between_profiles)

                try:
                    links = await with_retry(
                        lambda: crawl_profile(session, profile_url, config),
                        f"Profile {profile_url}", config.max_retries, config.retry_action_delay,
                    )
                except CrawlError as e:
                    logger.error(f"  Failed: {e}")
                    run_stats["profiles_failed"] += 1
                    continue

                links = links[:config.max_videos_per_profile]
                summary = {"videos_found": len(links), "videos_crawled": 0}

                for j, video_url in enumerate(links):
                    if j > 0:
                        await asyncio.sleep(config.delay_between_videos)
                    logger.info(f"  [{j+1}/{len(links)}] {video_url}")
                    try:
                        video = await with_retry(
                            lambda: crawl_video(session, store, video_url, config),
                            f"Video {video_url}", config.max_retries, config.retry_action_delay,
                        )
                        if video is None:
                            run_stats["videos_failed"] += 1
                            continue
                        run_stats["replies_saved"] += await crawl_comment_replies(session, store, video, config)
                    except CrawlError as e:
                        logger.error(f"  Failed: {e}")
                        run_stats["videos_failed"] += 1
                        continue

                    crawled_urls.append(video_url)
                    summary["videos_crawled"] += 1
                    run_stats["videos_crawled"] += 1

                run_stats["profile_summaries"][profile_url] = summary
                logger.info(f"  ✓ {summary['videos_crawled']}/{summary['videos_found']} videos")

            run_stats["session_stats"] = session.stats

        if export_path and crawled_urls:
            run_stats["exported_rows"] = export_videos(store, export_path, urls=crawled_urls)
        run_stats["store_stats"] = store.get_stats()
    finally:
        store.close()

    run_stats["completed_at"] = datetime.now().isoformat()
    summary_file = Path(config.log_dir) / f"run_summary_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    with open(summary_file, 'w', encoding='utf-8') as f:
        json.dump(run_stats, f, ensure_ascii=False, indent=2)

    logger.info(f"\n✅ Run complete! Summary saved to {summary_file}")
    logger.info(f"   - Profiles processed: {run_stats['profiles_processed']}")
    logger.info(f"   - Profiles failed: {run_stats['profiles_failed']}")
    logger.info(f"   - Videos crawled: {run_stats['videos_crawled']}")
    logger.info(f"   - Videos failed: {run_stats['videos_failed']}")
    return run_stats


# ============================================================================
# MAIN
# ============================================================================

def build_parser():
    import argparse
    parser = argparse.ArgumentParser(description="TikTok Video Crawler")

    # Input/Output
    parser.add_argument("--profiles", nargs="*", default=[], help="Profile URLs or @usernames")
    parser.add_argument("--profile-file", type=str, default=None, help="Text file with one profile per line")
    parser.add_argument("--db", type=str, default=None, help="SQLite database file")
    parser.add_argument("--export", type=str, default=None, help="Write a CSV export after the run")
    parser.add_argument("--export-only", action="store_true", help="Only export what is already stored")

    # Limits & pacing
    parser.add_argument("--max-videos-per-profile", type=int, default=None)
    parser.add_argument("--max-retries", type=int, default=None)
    parser.add_argument("--delay-videos", type=float, default=None)
    parser.add_argument("--delay-profiles", type=float, default=None)
    parser.add_argument("--delay-comments", type=float, default=None)

    # Technical
    parser.add_argument("--headless", action="store_true", default=None)
    parser.add_argument("--proxy", type=str, default=None)
    parser.add_argument("--fingerprint", type=str, default=None)
    parser.add_argument("--verbose", action="store_true")
    return parser


def config_from_args(args) -> CrawlerConfig:
    return CrawlerConfig.from_env(
        db_file=args.db,
        max_videos_per_profile=args.max_videos_per_profile,
        max_retries=args.max_retries,
        delay_between_videos=args.delay_videos,
        delay_between_profiles=args.delay_profiles,
        delay_between_comments=args.delay_comments,
        headless=args.headless,
        proxy=args.proxy,
        fingerprint_file=args.fingerprint,
    )


def main():
    args = build_parser().parse_args()
    config = config_from_args(args)

    if args.export_only:
        output = args.export or f"exports/videos_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        with VideoStore(db_file=config.db_file) as store:
            export_videos(store, output)
        return

    profile_urls = [normalize_profile(p, config.origin) for p in args.profiles]
    if args.profile_file:
        profile_urls += load_profile_urls(args.profile_file, config.origin)
    if not profile_urls:
        print("Error: no profiles given (use --profiles or --profile-file)")
        sys.exit(1)

    asyncio.run(crawl_profiles(profile_urls, config, verbose=args.verbose, export_path=args.export))


if __name__ == "__main__":
    main()
