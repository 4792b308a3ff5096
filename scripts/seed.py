"""Create the schema and seed a development database through the service layer."""
import asyncio
import argparse
import logging
import random
import time

from conduit.database import engine, async_session, Base
from conduit.schemas import ArticleCreate, UserCreate
from conduit.services import article_service, comment_service, user_service

import conduit.models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger("seed")

TAGS = ["python", "fastapi", "postgresql", "docker", "kubernetes",
        "react", "typescript", "devops", "testing", "security", "graphql"]


async def seed(small: bool = False):
    num_users = 5 if small else 25
    articles_per_user = 3 if small else 20

    logger.info("seeding %d users, %d articles", num_users, num_users * articles_per_user)
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            await user_service.create_user(session, UserCreate(
                username=f"user_{i:03d}",
                email=f"user_{i:03d}@example.com",
                bio=f"I am test user number {i}. I write about technology.",
            ))
            users.append(await user_service.get_user_by_username(session, f"user_{i:03d}"))

        for user in users:
            for other in random.sample(users, k=min(3, num_users)):
                if other.id != user.id:
                    await user_service.follow_user(session, user, other.username)

        slugs = []
        for user in users:
            for i in range(articles_per_user):
                topic = random.choice(TAGS)
                article = await article_service.create_article(session, user, ArticleCreate(
                    title=f"How to ship {topic} services, part {i}",
                    description=f"Notes on running {topic} in production.",
                    body=f"This is the full body of a post about {topic}. " * 10,
                    tagList=random.sample(TAGS, k=random.randint(1, 3)),
                ))
                slugs.append(article["slug"])

        for slug in slugs:
            for reader in random.sample(users, k=random.randint(0, 3)):
                await article_service.favorite_article(session, slug, reader)
            for reader in random.sample(users, k=random.randint(0, 2)):
                await comment_service.add_comment(session, slug, reader, f"Thanks, {reader.username} found this useful.")

        await session.commit()

    logger.info("seeding complete in %.1fs (%d articles)", time.perf_counter() - start, len(slugs))


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Seed the conduit database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
