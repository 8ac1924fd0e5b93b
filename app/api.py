"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.schemas import DeviceAnalysisOut, FleetReportOut, ReadingPayload, SchoolSummaryOut
from datastore.readings import ReadingSourceError
from services.pipeline import FleetAnalysisService, build_default_service

router = APIRouter()


def get_service() -> FleetAnalysisService:
    return build_default_service()


def _source_unavailable(exc: ReadingSourceError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(exc),
    )


@router.get(
    "/schools",
    response_model=FleetReportOut,
    summary="Schools ranked by battery replacement urgency.",
)
def list_schools(
    service: FleetAnalysisService = Depends(get_service),
) -> FleetReportOut:
    try:
        report = service.report()
    except ReadingSourceError as exc:
        raise _source_unavailable(exc) from exc
    return FleetReportOut.from_report(report, service.aggregator.risk_thresholds)


@router.get(
    "/schools/{school_id}",
    response_model=SchoolSummaryOut,
    summary="Device health summary for a single school.",
)
def get_school(
    school_id: int,
    service: FleetAnalysisService = Depends(get_service),
) -> SchoolSummaryOut:
    try:
        rank, summary = service.school(school_id)
    except ReadingSourceError as exc:
        raise _source_unavailable(exc) from exc
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc.args[0]),
        ) from exc
    return SchoolSummaryOut.from_summary(summary, rank, service.aggregator.risk_thresholds)


@router.get(
    "/devices/{device_id}",
    response_model=DeviceAnalysisOut,
    summary="Segment-by-segment usage analysis for one device.",
)
def get_device(
    device_id: str,
    service: FleetAnalysisService = Depends(get_service),
) -> DeviceAnalysisOut:
    try:
        analysis = service.device_analysis(device_id)
    except ReadingSourceError as exc:
        raise _source_unavailable(exc) from exc
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc.args[0]),
        ) from exc
    return DeviceAnalysisOut.from_analysis(analysis)


@router.post(
    "/analyses",
    response_model=FleetReportOut,
    summary="Analyze a batch of readings supplied in the request body.",
)
def analyze_batch(
    readings: List[ReadingPayload] = Body(..., description="Battery readings to analyze."),
    service: FleetAnalysisService = Depends(get_service),
) -> FleetReportOut:
    report = service.analyze_readings(payload.to_reading() for payload in readings)
    return FleetReportOut.from_report(report, service.aggregator.risk_thresholds)


@router.post(
    "/readings/refresh",
    summary="Drop cached readings so the next request reloads them.",
    status_code=status.HTTP_200_OK,
)
def refresh_readings(
    service: FleetAnalysisService = Depends(get_service),
) -> dict[str, str]:
    service.refresh()
    return {"status": "ok"}


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /schools for the replacement priority list."}
