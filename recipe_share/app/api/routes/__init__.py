from fastapi import APIRouter

from recipe_share.app.api.routes import analysis, auth, profiles, recipes, social, transcribe

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(profiles.router)
# Fixed recipe paths (/analyze, /generate-image) must precede /recipes/{identifier}
api_router.include_router(analysis.router)
api_router.include_router(recipes.router)
api_router.include_router(social.router)
api_router.include_router(transcribe.router)
