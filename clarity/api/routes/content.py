"""
Content API routes.

Read-only access to the content index through the shared repository.
"""

from typing import Optional

from fastapi import APIRouter, Query
import structlog

from clarity.api.dependencies import ContentRepoDep
from clarity.api.schemas import (
    CategoriesResponse,
    EmotionsResponse,
    MiningPromptsResponse,
    ReplacementThoughtsResponse,
    SearchResponse,
    SubcategoriesResponse,
)
from clarity.domain.models.content import (
    ACTExercise,
    ContentStats,
    DataExtractionQuestion,
    HierarchicalThoughts,
)

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/content", tags=["content"])


@router.get("/categories", response_model=CategoriesResponse)
async def list_categories(content: ContentRepoDep):
    return CategoriesResponse(categories=await content.get_categories())


@router.get("/categories/{category}/subcategories", response_model=SubcategoriesResponse)
async def list_subcategories(category: str, content: ContentRepoDep):
    return SubcategoriesResponse(
        category=category, subcategories=await content.get_subcategories(category)
    )


@router.get("/categories/{category}/emotions", response_model=EmotionsResponse)
async def list_emotions(category: str, content: ContentRepoDep):
    return EmotionsResponse(
        topic=category, emotions=await content.get_emotion_palette(category)
    )


@router.get("/categories/{category}/mining-prompts", response_model=MiningPromptsResponse)
async def get_mining_prompts(
    category: str,
    content: ContentRepoDep,
    prompt_type: str = Query(..., alias="type"),
    subcategory: Optional[str] = None,
):
    """Mining prompts of one type; data-extraction questions are returned as objects."""
    prompts = await content.get_mining_prompts(category, prompt_type, subcategory)
    return MiningPromptsResponse(
        category=category,
        prompt_type=prompt_type,
        subcategory=subcategory,
        prompts=[
            p.model_dump(by_alias=True) if isinstance(p, DataExtractionQuestion) else p
            for p in prompts
        ],
    )


@router.get(
    "/categories/{category}/replacement-thoughts",
    response_model=ReplacementThoughtsResponse,
)
async def get_replacement_thoughts(
    category: str,
    content: ContentRepoDep,
    subcategory: Optional[str] = None,
    level: Optional[int] = None,
):
    thoughts = await content.get_replacement_thoughts(category, subcategory, level)
    return ReplacementThoughtsResponse(
        category=category, subcategory=subcategory, level=level, thoughts=thoughts
    )


@router.get(
    "/categories/{category}/replacement-thoughts/hierarchical",
    response_model=HierarchicalThoughts,
)
async def get_hierarchical_thoughts(
    category: str, content: ContentRepoDep, subcategory: Optional[str] = None
):
    return await content.get_hierarchical_replacement_thoughts(category, subcategory)


@router.get("/act-exercise", response_model=ACTExercise)
async def get_act_exercise(content: ContentRepoDep, topic: Optional[str] = None):
    return await content.get_act_exercise(topic)


@router.get("/search", response_model=SearchResponse)
async def search_content(
    content: ContentRepoDep,
    q: str = Query(..., min_length=1),
    category: Optional[str] = None,
):
    results = await content.search_content(q, category)
    return SearchResponse(
        query=q, results=[r.model_dump() for r in results], total=len(results)
    )


@router.get("/stats", response_model=ContentStats)
async def get_stats(content: ContentRepoDep):
    return await content.get_stats()
