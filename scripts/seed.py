"""Database seeder: one admin account plus sample readers, blogs, comments and likes."""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import insert

from blog_platform.config import settings
from blog_platform.database import Base, async_session, engine
from blog_platform.models import CATEGORIES, ROLE_ADMIN, Blog, Comment, Tag, User, blog_likes, blog_tags
from blog_platform.security import hash_password
from blog_platform.services.blog_service import derive_excerpt, derive_read_time

TAGS = ["python", "fastapi", "travel-tips", "recipes", "fitness", "startups",
        "film", "football", "elections", "teaching", "space", "misc"]

PARAGRAPH = (
    "<p>This is a sample paragraph written for the seeded blog. It talks about "
    "{topic} in enough detail to produce a realistic excerpt and read time.</p>"
)


async def seed(admin_email: str, admin_password: str, small: bool = False, reset: bool = False):
    num_users = 5 if small else 25
    num_blogs = 20 if small else 300

    print(f"Seeding: 1 admin, {num_users} readers, {num_blogs} blogs")
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        admin = User(
            name="Administrator",
            email=admin_email.strip().lower(),
            password_hash=hash_password(admin_password, settings),
            role=ROLE_ADMIN,
            bio="Site administrator",
        )
        session.add(admin)

        tags = [Tag(name=name) for name in TAGS]
        session.add_all(tags)

        users = []
        for i in range(num_users):
            user = User(
                name=f"Reader {i}",
                email=f"reader_{i:03d}@example.com",
                password_hash=hash_password("password123", settings),
                bio=f"I am sample reader number {i}.",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users) + 1} users and {len(tags)} tags")

        now = datetime.now(timezone.utc)
        blog_ids = []
        for i in range(num_blogs):
            category = random.choice(CATEGORIES)
            content = "".join(PARAGRAPH.format(topic=category) for _ in range(random.randint(1, 40)))
            blog = Blog(
                title=f"Post {i}: notes on {category}",
                content=content,
                excerpt=derive_excerpt(content),
                read_time=derive_read_time(content),
                category=category,
                image=settings.DEFAULT_BLOG_IMAGE,
                views=random.randint(0, 5000),
                status=random.choices(["published", "draft", "archived"], weights=[8, 1, 1])[0],
                created_at=now - timedelta(days=random.randint(0, 365)),
                author_id=random.choice(users).id,
            )
            session.add(blog)
            await session.flush()
            blog_ids.append(blog.id)

            picked = random.sample(tags, k=random.randint(1, 3))
            await session.execute(
                insert(blog_tags),
                [{"blog_id": blog.id, "tag_id": t.id, "position": pos} for pos, t in enumerate(picked)],
            )
            fans = random.sample(users, k=random.randint(0, len(users)))
            if fans:
                await session.execute(insert(blog_likes), [{"blog_id": blog.id, "user_id": u.id} for u in fans])

        total_comments = 0
        for blog_id in blog_ids:
            for _ in range(random.randint(0, 4)):
                commenter = random.choice(users)
                session.add(Comment(text=f"Thanks for sharing! ({commenter.name})", user_id=commenter.id, blog_id=blog_id))
                total_comments += 1

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Admin: {admin_email}")
    print(f"  Blogs: {num_blogs}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--admin-email", default="admin@example.com")
    parser.add_argument("--admin-password", default="admin123")
    parser.add_argument("--small", action="store_true", help="Use small dataset (20 blogs)")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    asyncio.run(seed(args.admin_email, args.admin_password, small=args.small, reset=args.reset))


if __name__ == "__main__":
    main()
