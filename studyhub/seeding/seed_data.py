"""
Seed Data - sample content for a fresh installation

Creates through the storage interface, so it works on every backend:
1. Admin user (admin@biblestudyhub.com)
2. Main topic "People of God in the Bible"
3. Classes "Righteous People" and "Wicked People"
4. Lessons on Abraham and Moses

Running it twice does nothing the second time: the admin email marks the
content as already seeded.

Usage:
    STORAGE_BACKEND=sql DATABASE_URL=sqlite:///./study_hub.db python -m studyhub.seeding.seed_data
"""
import logging
from typing import Optional

from studyhub.schemas import UserCreate, MainTopicCreate, ClassCreate, LessonCreate, UserResponse
from studyhub.storage.base import ContentStorage

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@biblestudyhub.com"

ABRAHAM_CONTENT = (
    "<h2>Abraham's Journey of Faith</h2>"
    "<p>Abraham's story begins in Genesis 12, where God calls him to leave his homeland and "
    "journey to a land that God would show him. This act of obedience demonstrates the essence "
    "of faith - trusting God even when we cannot see the full picture.</p>"
    "<h3>Key Lessons from Abraham's Life:</h3><ul>"
    "<li><strong>Obedience to God's Call:</strong> When God called Abraham to leave Ur of the "
    "Chaldeans, he obeyed without hesitation (Genesis 12:1-4).</li>"
    "<li><strong>Faith in God's Promises:</strong> Despite being childless at an advanced age, "
    "Abraham believed God's promise to make him the father of many nations (Romans 4:16-21).</li>"
    "<li><strong>Willingness to Sacrifice:</strong> Abraham's willingness to sacrifice Isaac shows "
    "his complete trust in God's character and promises (Genesis 22:1-19).</li></ul>"
    "<p>Abraham's life teaches us that faith is not merely intellectual belief, but active trust "
    "that results in obedience to God's will.</p>"
)

MOSES_CONTENT = (
    "<h2>Moses: Leader, Prophet, and Lawgiver</h2>"
    "<p>Moses stands as one of the most significant figures in Biblical history. Chosen by God "
    "to lead the Israelites out of Egyptian bondage, Moses' life demonstrates God's power "
    "working through willing servants.</p>"
    "<h3>Moses' Journey:</h3><ul>"
    "<li><strong>The Burning Bush:</strong> God's call to Moses at the burning bush (Exodus 3:1-17)</li>"
    "<li><strong>The Ten Plagues:</strong> God's power demonstrated through Moses (Exodus 7-12)</li>"
    "<li><strong>The Exodus:</strong> Leading God's people out of slavery (Exodus 12-15)</li>"
    "<li><strong>Receiving the Law:</strong> The Ten Commandments and the Mosaic Law (Exodus 19-24)</li></ul>"
    "<p>Moses' story teaches us about God's faithfulness, the importance of obedience, and how God "
    "can use anyone for His purposes regardless of their perceived limitations.</p>"
)


def seed_sample_content(storage: ContentStorage) -> Optional[UserResponse]:
    """
    Insert the sample content unless the admin user already exists

    Returns:
        The created admin user, or None when the content was already there
    """
    if storage.get_user_by_email(ADMIN_EMAIL) is not None:
        logger.info(f"Sample content already present ({ADMIN_EMAIL}), skipping seed")
        return None

    admin = storage.create_user(UserCreate(
        email=ADMIN_EMAIL,
        full_name="Bible Study Admin",
        is_admin=True,
    ))

    main = storage.create_main(MainTopicCreate(
        title="People of God in the Bible",
        description="Explore the lives and characteristics of various people mentioned in Biblical history.",
        icon="fas fa-users",
        order=1,
        created_by=admin.id,
    ))

    righteous = storage.create_class(ClassCreate(
        title="Righteous People",
        description="Learn from the faith and obedience of righteous individuals throughout Biblical history.",
        main_id=main.id,
        order=1,
        created_by=admin.id,
    ))
    storage.create_class(ClassCreate(
        title="Wicked People",
        description="Understand the consequences of turning away from God through Biblical examples.",
        main_id=main.id,
        order=2,
        created_by=admin.id,
    ))

    storage.create_lesson(LessonCreate(
        title="Abraham: The Father of Faith",
        content=ABRAHAM_CONTENT,
        excerpt="Discover how Abraham's unwavering faith and obedience to God's call made him the father of many nations.",
        bible_reference="Genesis 12-22",
        image_url="https://images.unsplash.com/photo-1544967919-6e89ec2cb57b?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&h=400",
        duration=15,
        class_id=righteous.id,
        order=1,
        is_published=True,
        created_by=admin.id,
    ))
    storage.create_lesson(LessonCreate(
        title="Moses: The Great Lawgiver",
        content=MOSES_CONTENT,
        excerpt="Learn about Moses' role as leader, prophet, and lawgiver who brought God's people out of Egypt.",
        bible_reference="Exodus 1-40",
        image_url="https://images.unsplash.com/photo-1578662996442-48f60103fc96?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&h=400",
        duration=22,
        class_id=righteous.id,
        order=2,
        is_published=True,
        created_by=admin.id,
    ))

    logger.info(f"Seeded sample content: main topic {main.id}, 2 classes, 2 lessons")
    return admin


if __name__ == "__main__":
    from studyhub.storage.factory import create_storage

    logging.basicConfig(level=logging.INFO)
    storage = create_storage()
    try:
        seed_sample_content(storage)
    finally:
        storage.close()
