"""Initial schema: profiles, recipes and recipe children

Revision ID: a1c4e2f09b37
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = 'a1c4e2f09b37'
down_revision = None
branch_labels = None
depends_on = None


def _recipe_fk() -> sa.Column:
    return sa.Column(
        'recipe_id',
        sa.String(length=36),
        sa.ForeignKey('recipes.id', ondelete='CASCADE'),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('handle', sa.String(length=30), nullable=False),
        sa.Column('display_name', sa.String(length=50), nullable=True),
        sa.Column('avatar_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_profiles_handle', 'profiles', ['handle'], unique=True)

    op.create_table(
        'recipes',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('description_md', sa.Text(), nullable=True),
        sa.Column('yield_text', sa.String(), nullable=True),
        sa.Column('total_time_min', sa.Integer(), nullable=True),
        sa.Column('active_time_min', sa.Integer(), nullable=True),
        sa.Column('cuisine', sa.String(), nullable=True),
        sa.Column(
            'difficulty',
            sa.Enum('easy', 'medium', 'hard', name='difficulty', native_enum=False),
            nullable=True,
        ),
        sa.Column('diet_tags', sa.JSON(), nullable=True),
        sa.Column('allergen_tags', sa.JSON(), nullable=True),
        sa.Column('hero_image_url', sa.String(), nullable=True),
        sa.Column('nutrition_json', sa.JSON(), nullable=True),
        sa.Column('public', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_recipes_user_id', 'recipes', ['user_id'])
    op.create_index('ix_recipes_slug', 'recipes', ['slug'], unique=True)
    op.create_index('ix_recipes_public_created_at', 'recipes', ['public', 'created_at'])

    op.create_table(
        'ingredients',
        sa.Column('id', sa.Integer(), primary_key=True),
        _recipe_fk(),
        sa.Column('idx', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Float(), nullable=True),
        sa.Column('unit', sa.String(), nullable=True),
        sa.Column('item', sa.String(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.UniqueConstraint('recipe_id', 'idx', name='uq_ingredient_order'),
    )
    op.create_index('ix_ingredients_recipe_id', 'ingredients', ['recipe_id'])

    op.create_table(
        'steps',
        sa.Column('id', sa.Integer(), primary_key=True),
        _recipe_fk(),
        sa.Column('idx', sa.Integer(), nullable=False),
        sa.Column('instruction', sa.Text(), nullable=False),
        sa.Column('timer_seconds', sa.Integer(), nullable=True),
        sa.Column('temperature_c', sa.Float(), nullable=True),
        sa.Column('tool', sa.String(), nullable=True),
        sa.Column('tip', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.UniqueConstraint('recipe_id', 'idx', name='uq_step_order'),
    )
    op.create_index('ix_steps_recipe_id', 'steps', ['recipe_id'])

    op.create_table(
        'substitutions',
        sa.Column('id', sa.Integer(), primary_key=True),
        _recipe_fk(),
        sa.Column('ingredient_idx', sa.Integer(), nullable=False),
        sa.Column('suggestion', sa.Text(), nullable=False),
    )
    op.create_index('ix_substitutions_recipe_id', 'substitutions', ['recipe_id'])

    op.create_table(
        'images',
        sa.Column('id', sa.String(length=36), primary_key=True),
        _recipe_fk(),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('caption', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_images_recipe_id', 'images', ['recipe_id'])

    op.create_table(
        'comments',
        sa.Column('id', sa.String(length=36), primary_key=True),
        _recipe_fk(),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('body_md', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_comments_recipe_id', 'comments', ['recipe_id'])
    op.create_index('ix_comments_user_id', 'comments', ['user_id'])

    op.create_table(
        'likes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        _recipe_fk(),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'recipe_id', name='uq_like_user_recipe'),
    )
    op.create_index('ix_likes_user_id', 'likes', ['user_id'])
    op.create_index('ix_likes_recipe_id', 'likes', ['recipe_id'])


def downgrade() -> None:
    for table in ('likes', 'comments', 'images', 'substitutions', 'steps', 'ingredients', 'recipes', 'profiles'):
        op.drop_table(table)
