# FILE: taxengine/routers/reports.py

import os
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from taxengine.database import get_db
from taxengine.exceptions import TaxEngineError
from taxengine.schemas.tax_report import Form8949Report, TaxReport
from taxengine.schemas.transaction import Transaction
from taxengine.services import transaction as tx_service
from taxengine.services.reports.export import EXPORT_KINDS, export_report_csv
from taxengine.services.reports.form_8949 import build_form_8949_and_schedule_d
from taxengine.services.tax_calculator import calculate_tax_report

logger = logging.getLogger(__name__)

reports_router = APIRouter()

DEFAULT_METHOD = os.getenv("DEFAULT_COST_BASIS_METHOD", "FIFO")


def _run(transactions: List[Transaction], year: int, method: str) -> TaxReport:
    """
    Calls the engine and turns caller-contract errors into 400s.
    """
    try:
        return calculate_tax_report(transactions, year, method)
    except TaxEngineError as e:
        logger.warning(f"Rejected tax report request for {year} ({method}): {e}")
        raise HTTPException(status_code=400, detail=str(e))


def _report_from_db(db: Session, year: int, method: str) -> TaxReport:
    transactions = tx_service.get_transactions_through_year(db, year)
    return _run(transactions, year, method)


@reports_router.post("/calculate", response_model=TaxReport)
def calculate_report(
    transactions: List[Transaction],
    year: int,
    method: str = Query(DEFAULT_METHOD, description="FIFO, LIFO or HIFO"),
):
    """
    Computes a TaxReport from transactions supplied in the request body.
    The list must be in chronological order and cover all history through `year`.
    """
    return _run(transactions, year, method)


@reports_router.get("/tax_report", response_model=TaxReport)
def get_tax_report(
    year: int,
    method: str = Query(DEFAULT_METHOD, description="FIFO, LIFO or HIFO"),
    db: Session = Depends(get_db),
):
    """
    Computes a TaxReport from every stored transaction through the end of `year`.
    """
    return _report_from_db(db, year, method)


@reports_router.get("/form_8949", response_model=Form8949Report)
def get_form_8949(
    year: int,
    method: str = Query(DEFAULT_METHOD, description="FIFO, LIFO or HIFO"),
    db: Session = Depends(get_db),
):
    """
    Form 8949 rows split by holding period, plus Schedule D totals.
    """
    report = _report_from_db(db, year, method)
    return build_form_8949_and_schedule_d(report.form_8949)


@reports_router.get("/export")
def export_report(
    year: int,
    kind: str = Query("capital_gains", pattern="^(capital_gains|income|by_asset)$"),
    method: str = Query(DEFAULT_METHOD, description="FIFO, LIFO or HIFO"),
    db: Session = Depends(get_db),
):
    """
    CSV download of capital gains, income, or gains grouped by asset.
    """
    report = _report_from_db(db, year, method)
    csv_data = export_report_csv(report, kind)
    return Response(
        content=csv_data.encode("utf-8"),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{kind}_{year}.csv"'}
    )


@reports_router.get("/export_kinds")
def list_export_kinds():
    return {"kinds": list(EXPORT_KINDS)}
