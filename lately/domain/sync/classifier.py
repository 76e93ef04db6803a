"""
Category classifier
Maps a free-text service name to a category through an ordered keyword rule table.
First matching rule wins; categories are created lazily the first time a rule needs one.
"""

import logging
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from .repository import SyncRepository
from .settings import SyncSettings

logger = logging.getLogger(__name__)


class CategoryRule(NamedTuple):
    keywords: tuple[str, ...]
    category: str
    icon_name: str


DEFAULT_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(("massage", "deep tissue", "swedish", "hot stone", "prenatal", "sports massage"), "Massage", "hand"),
    CategoryRule(("yoga", "pilates", "fitness", "workout", "exercise", "training"), "Fitness", "dumbbell"),
    CategoryRule(
        ("facial", "skincare", "beauty", "makeup", "eyebrow", "brow", "lashes", "lash", "lamination", "tint", "lift"),
        "Beauty",
        "sparkles",
    ),
    CategoryRule(("nail", "manicure", "pedicure"), "Nail Care", "palette"),
    CategoryRule(("hair", "haircut", "styling", "color", "highlights"), "Hair Care", "scissors"),
    CategoryRule(("therapy", "counseling", "mental health", "wellness"), "Therapy", "heart"),
)


class CategoryClassifier:
    def __init__(self, settings: SyncSettings, rules: tuple[CategoryRule, ...] = DEFAULT_RULES):
        self.settings = settings
        self.rules = rules
        self.repo = SyncRepository()

    def match(self, service_name: str) -> Optional[CategoryRule]:
        """Pure rule lookup, case-insensitive substring match"""
        lowered = (service_name or "").lower()
        for rule in self.rules:
            if any(keyword in lowered for keyword in rule.keywords):
                return rule
        return None

    def classify(self, db: Session, service_name: str) -> Optional[int]:
        rule = self.match(service_name)
        if rule is None:
            logger.info(f"No category match found for: {service_name}")
            return None

        category = self.repo.get_or_create_category(
            db, rule.category, description=f"{rule.category} services", icon_name=rule.icon_name
        )
        logger.info(f'Categorized "{service_name}" -> {rule.category} (ID: {category.id})')
        return category.id

    def default_category(self, db: Session, platform: str) -> int:
        """Platform fallback category, created on first use"""
        name = self.settings.default_category_for(platform)
        category = self.repo.get_or_create_category(
            db,
            name,
            description=f"Services synced from {platform}",
            icon_name=self.settings.icon_for(platform),
        )
        return category.id

    def resolve(self, db: Session, service_name: str, platform: str) -> int:
        category_id = self.classify(db, service_name)
        if category_id is None:
            category_id = self.default_category(db, platform)
        return category_id
