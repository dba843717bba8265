#!/usr/bin/env python3
"""
Test Data Script for the Tubely backend.

Creates video records in MongoDB for local development and prints, for each
owner, a bearer token that the upload endpoints accept. Records are created
without thumbnail or video URLs; the upload endpoints fill those in.

Usage:
    python scripts/create_test_data.py [options]

Options:
    --users INT     Number of owners to create (default: 1)
    --videos INT    Number of video records per owner (default: 2)
    --verbose       Display detailed operation logs

Environment Variables:
    MONGODB_URI, MONGODB_DB_NAME, SECRET_KEY (see tubely.config.Settings)
"""

import argparse
import asyncio
import logging
import sys

from uuid import uuid4

from tubely.config import get_settings
from tubely.core.auth import create_access_token
from tubely.core.database import close_db, init_db
from tubely.core.errors import TubelyError
from tubely.models.video import Video
from tubely.services.video_repository import VideoRepository
from tubely.utils.logger import setup_logging


logger = logging.getLogger("create_test_data")

SAMPLE_TITLES = [
    "Boots",
    "Horizon timelapse",
    "Vertical city walk",
    "Square product demo",
]


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create video records and access tokens for Tubely development",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/create_test_data.py                  # One owner, two videos
    python scripts/create_test_data.py --users 3        # Three owners
    python scripts/create_test_data.py --videos 5       # Five videos per owner
        """,
    )
    parser.add_argument("--users", type=int, default=1, help="Number of owners (default: 1)")
    parser.add_argument(
        "--videos", type=int, default=2, help="Video records per owner (default: 2)"
    )
    parser.add_argument("--verbose", action="store_true", help="Display detailed operation logs")
    return parser.parse_args()


async def create_test_data(users: int, videos_per_user: int) -> list[tuple[str, str, list[str]]]:
    """
    Insert video records and return (user_id, token, video_ids) per owner.
    """
    settings = get_settings()
    db_client = await init_db(settings)
    repo = VideoRepository(db_client.get_videos_collection())

    created = []
    try:
        for _ in range(users):
            user_id = uuid4()
            video_ids = []
            for index in range(videos_per_user):
                video = Video(
                    user_id=user_id,
                    title=SAMPLE_TITLES[index % len(SAMPLE_TITLES)],
                    description="Created by create_test_data.py",
                )
                await repo.create_video(video)
                video_ids.append(str(video.id))
            created.append((str(user_id), create_access_token(user_id, settings), video_ids))
    finally:
        await close_db()
    return created


def main() -> int:
    args = parse_arguments()
    setup_logging(log_level="DEBUG" if args.verbose else "WARNING", json_logs=False)

    try:
        created = asyncio.run(create_test_data(args.users, args.videos))
    except KeyboardInterrupt:
        logger.warning("Operation cancelled by user")
        return 130
    except (RuntimeError, TubelyError):
        logger.exception("Could not create test data")
        return 1

    print("\n" + "=" * 60)
    print("Tubely test data")
    print("=" * 60)
    for user_id, token, video_ids in created:
        print(f"\nuser_id: {user_id}")
        print(f"token:   {token}")
        for video_id in video_ids:
            print(f"  video: {video_id}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
