from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coursesearch.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    CourseResponseItem,
    InstitutionResponseItem,
    NormalizationResponse,
    PruneResponse,
)
from coursesearch.services.catalog_service import CatalogService, get_catalog_service
from coursesearch.services.course_identity import CourseIdentity
from coursesearch.services.normalization import normalize_course_code

router = APIRouter(prefix="/v1/courses", tags=["courses"])


def _to_item(course: CourseIdentity) -> CourseResponseItem:
    return CourseResponseItem(
        code=course.code,
        name=course.name,
        institution=course.institution,
        institution_code=course.institution_code,
        key=course.key,
    )


def _require_known_institution(service: CatalogService, institution: str | None) -> None:
    if institution and service.registry.get(institution) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": "UNKNOWN_INSTITUTION", "institution": institution},
        )


@router.get("/search", response_model=list[CourseResponseItem])
async def search(
    q: str = Query(default=""),
    institution: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200),
    service: CatalogService = Depends(get_catalog_service),
) -> list[CourseResponseItem]:
    _require_known_institution(service, institution)
    results = await service.search_all_courses(q, institution, limit)
    return [_to_item(c) for c in results]


@router.get("/lookup", response_model=CourseResponseItem)
async def lookup(
    code: str = Query(min_length=1),
    institution: str | None = Query(default=None),
    service: CatalogService = Depends(get_catalog_service),
) -> CourseResponseItem:
    _require_known_institution(service, institution)
    course = await service.get_course_by_code(code, institution)
    if course is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": "COURSE_NOT_FOUND", "code": code, "institution": institution},
        )
    return _to_item(course)


@router.get("/popular", response_model=list[CourseResponseItem])
async def popular(
    institution: str | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=200),
    service: CatalogService = Depends(get_catalog_service),
) -> list[CourseResponseItem]:
    _require_known_institution(service, institution)
    return [_to_item(c) for c in await service.get_popular_courses(institution, limit)]


@router.get("/popular:round-robin", response_model=list[CourseResponseItem])
async def popular_round_robin(
    limit: int = Query(default=10, ge=1, le=200),
    per_institution: int | None = Query(default=None, ge=1),
    service: CatalogService = Depends(get_catalog_service),
) -> list[CourseResponseItem]:
    results = await service.get_most_popular_courses_round_robin(limit, per_institution)
    return [_to_item(c) for c in results]


@router.get("/normalize", response_model=NormalizationResponse)
def normalize(code: str = Query(default="")) -> NormalizationResponse:
    result = normalize_course_code(code)
    return NormalizationResponse(
        original=result.original,
        normalized=result.normalized,
        steps=list(result.steps),
        changed=result.changed,
    )


@router.get("/unavailable", response_model=AvailabilityResponse)
def availability(
    code: str = Query(min_length=1),
    institution: str = Query(min_length=1),
    service: CatalogService = Depends(get_catalog_service),
) -> AvailabilityResponse:
    return AvailabilityResponse(
        code=code,
        institution=institution,
        unavailable=service.is_course_unavailable(code, institution),
    )


@router.post("/unavailable", response_model=AvailabilityResponse)
def mark_unavailable(
    req: AvailabilityRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> AvailabilityResponse:
    service.mark_course_as_unavailable(req.code, req.institution)
    return AvailabilityResponse(
        code=req.code,
        institution=req.institution,
        unavailable=service.is_course_unavailable(req.code, req.institution),
    )


@router.post("/cache:prune", response_model=PruneResponse)
def prune_cache(service: CatalogService = Depends(get_catalog_service)) -> PruneResponse:
    removed = service.prune_caches()
    return PruneResponse(positive_removed=removed.positive_removed, negative_removed=removed.negative_removed)


@router.get("/institutions", response_model=list[InstitutionResponseItem])
def institutions(service: CatalogService = Depends(get_catalog_service)) -> list[InstitutionResponseItem]:
    return [
        InstitutionResponseItem(
            code=inst.code,
            name=inst.name,
            short_name=inst.short_name,
            type=inst.type,
            source_kind=inst.source_kind,
        )
        for inst in service.registry
    ]
