from datetime import datetime
import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from recipe_share.app.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the identity provider's user id
    id = Column(String(36), primary_key=True)
    handle = Column(String(30), nullable=False, unique=True, index=True)
    display_name = Column(String(50))
    avatar_url = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)


class Recipe(Base):
    __tablename__ = "recipes"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    title = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    description_md = Column(Text)
    yield_text = Column(String)
    total_time_min = Column(Integer)
    active_time_min = Column(Integer)
    cuisine = Column(String)
    difficulty = Column(Enum(Difficulty, native_enum=False, values_callable=lambda e: [m.value for m in e]))
    diet_tags = Column(JSON)
    allergen_tags = Column(JSON)
    hero_image_url = Column(String)
    nutrition_json = Column(JSON)
    public = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ingredients = relationship(
        "Ingredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="Ingredient.idx",
    )
    steps = relationship(
        "Step",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="Step.idx",
    )
    substitutions = relationship(
        "Substitution",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="Substitution.ingredient_idx",
    )
    images = relationship(
        "Image",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="Image.created_at",
    )
    comments = relationship(
        "Comment",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )
    likes = relationship("Like", back_populates="recipe", cascade="all, delete-orphan")

    __table_args__ = (Index("ix_recipes_public_created_at", "public", "created_at"),)


class Ingredient(Base):
    __tablename__ = "ingredients"
    __table_args__ = (UniqueConstraint("recipe_id", "idx", name="uq_ingredient_order"),)

    id = Column(Integer, primary_key=True)
    recipe_id = Column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    idx = Column(Integer, nullable=False)
    quantity = Column(Float)
    unit = Column(String)
    item = Column(String, nullable=False)
    notes = Column(Text)

    recipe = relationship("Recipe", back_populates="ingredients")


class Step(Base):
    __tablename__ = "steps"
    __table_args__ = (UniqueConstraint("recipe_id", "idx", name="uq_step_order"),)

    id = Column(Integer, primary_key=True)
    recipe_id = Column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    idx = Column(Integer, nullable=False)
    instruction = Column(Text, nullable=False)
    timer_seconds = Column(Integer)
    temperature_c = Column(Float)
    tool = Column(String)
    tip = Column(Text)
    image_url = Column(String)

    recipe = relationship("Recipe", back_populates="steps")


class Substitution(Base):
    __tablename__ = "substitutions"

    id = Column(Integer, primary_key=True)
    recipe_id = Column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    ingredient_idx = Column(Integer, nullable=False)
    suggestion = Column(Text, nullable=False)

    recipe = relationship("Recipe", back_populates="substitutions")


class Image(Base):
    __tablename__ = "images"

    id = Column(String(36), primary_key=True, default=_uuid)
    recipe_id = Column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=False)
    caption = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    recipe = relationship("Recipe", back_populates="images")


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=_uuid)
    recipe_id = Column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    body_md = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    recipe = relationship("Recipe", back_populates="comments")
    # Commenters are not required to have a profile
    profile = relationship("Profile", primaryjoin="foreign(Comment.user_id) == Profile.id", viewonly=True)


class Like(Base):
    __tablename__ = "likes"
    __table_args__ = (UniqueConstraint("user_id", "recipe_id", name="uq_like_user_recipe"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    recipe_id = Column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    recipe = relationship("Recipe", back_populates="likes")
