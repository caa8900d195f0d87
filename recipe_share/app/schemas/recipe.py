from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from recipe_share.app.db.models import Difficulty
from recipe_share.app.schemas.profile import ProfileRead


class RecipeFields(BaseModel):
    title: Optional[str] = None
    description_md: Optional[str] = None
    yield_text: Optional[str] = None
    total_time_min: Optional[int] = Field(None, ge=0)
    active_time_min: Optional[int] = Field(None, ge=0)
    cuisine: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    diet_tags: Optional[List[str]] = None
    allergen_tags: Optional[List[str]] = None
    hero_image_url: Optional[str] = None
    nutrition_json: Optional[Dict[str, Any]] = None
    public: Optional[bool] = None

    # Drafts may echo server-owned columns (id, user_id, slug); they are ignored.
    model_config = ConfigDict(extra="ignore")


class IngredientIn(BaseModel):
    idx: Optional[int] = Field(None, ge=0)
    quantity: Optional[float] = None
    unit: Optional[str] = None
    item: str
    notes: Optional[str] = None


class StepIn(BaseModel):
    idx: Optional[int] = Field(None, ge=0)
    instruction: str
    timer_seconds: Optional[int] = Field(None, ge=0)
    temperature_c: Optional[float] = None
    tool: Optional[str] = None
    tip: Optional[str] = None
    image_url: Optional[str] = None


class SubstitutionIn(BaseModel):
    ingredient_idx: int
    suggestion: str


class ImageIn(BaseModel):
    url: str
    caption: Optional[str] = None


def _fill_and_check_order(rows: List[Any], label: str) -> None:
    taken = {row.idx for row in rows if row.idx is not None}
    next_idx = 0
    for row in rows:
        if row.idx is None:
            while next_idx in taken:
                next_idx += 1
            row.idx = next_idx
            taken.add(next_idx)
    seen = set()
    for row in rows:
        if row.idx in seen:
            raise ValueError(f"Duplicate {label} idx {row.idx}")
        seen.add(row.idx)


class RecipeChildren(BaseModel):
    ingredients: List[IngredientIn] = Field(default_factory=list)
    steps: List[StepIn] = Field(default_factory=list)
    substitutions: List[SubstitutionIn] = Field(default_factory=list)
    images: List[ImageIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_ordinals(self):
        _fill_and_check_order(self.ingredients, "ingredient")
        _fill_and_check_order(self.steps, "step")
        ingredient_idxs = {ing.idx for ing in self.ingredients}
        for sub in self.substitutions:
            if sub.ingredient_idx not in ingredient_idxs:
                raise ValueError(f"Substitution references unknown ingredient idx {sub.ingredient_idx}")
        return self


class RecipeCreate(RecipeChildren):
    title: Optional[str] = None
    recipe: RecipeFields = Field(default_factory=RecipeFields)

    def resolved_title(self) -> str:
        return (self.title or self.recipe.title or "").strip()


class RecipeUpdate(RecipeChildren):
    recipe: RecipeFields = Field(default_factory=RecipeFields)


class CommentCreate(BaseModel):
    body: Optional[str] = None


class ImageAppend(ImageIn):
    pass


class IngredientRead(BaseModel):
    idx: int
    quantity: Optional[float] = None
    unit: Optional[str] = None
    item: str
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class StepRead(BaseModel):
    idx: int
    instruction: str
    timer_seconds: Optional[int] = None
    temperature_c: Optional[float] = None
    tool: Optional[str] = None
    tip: Optional[str] = None
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SubstitutionRead(BaseModel):
    ingredient_idx: int
    suggestion: str

    model_config = ConfigDict(from_attributes=True)


class ImageRead(BaseModel):
    id: str
    url: str
    caption: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CommentRead(BaseModel):
    id: str
    recipe_id: str
    user_id: Optional[str] = None
    body_md: str
    created_at: Optional[datetime] = None
    profiles: Optional[ProfileRead] = Field(None, validation_alias="profile")

    model_config = ConfigDict(from_attributes=True)


class RecipeRead(BaseModel):
    id: str
    user_id: str
    slug: str
    title: str
    description_md: Optional[str] = None
    yield_text: Optional[str] = None
    total_time_min: Optional[int] = None
    active_time_min: Optional[int] = None
    cuisine: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    diet_tags: Optional[List[str]] = None
    allergen_tags: Optional[List[str]] = None
    hero_image_url: Optional[str] = None
    nutrition_json: Optional[Dict[str, Any]] = None
    public: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    ingredients: List[IngredientRead]
    steps: List[StepRead]
    substitutions: List[SubstitutionRead]
    images: List[ImageRead]
    comments: List[CommentRead]

    model_config = ConfigDict(from_attributes=True)


class RecipeDetail(RecipeRead):
    like_count: int = 0
    liked_by_me: bool = False
    isOwner: bool = False


class FeedRow(BaseModel):
    id: str
    slug: str
    title: str
    hero_image_url: Optional[str] = None
    minutes: Optional[int] = None
    diet_tags: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    author_handle: Optional[str] = None


class MyRecipeRow(BaseModel):
    id: str
    slug: str
    title: str
    description_md: Optional[str] = None
    hero_image_url: Optional[str] = None
    total_time_min: Optional[int] = None
    active_time_min: Optional[int] = None
    diet_tags: Optional[List[str]] = None
    public: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
