"""Collapse imported car models into canonical model families.

Usage: python -m motoverse.jobs.reorganize_models
"""
from __future__ import annotations
import asyncio
import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from motoverse.config import Settings
from motoverse.db import Database
from motoverse.logging_setup import configure_logging
from motoverse.models.catalog import CarMake, CarModel, CarGeneration, EngineConfig
from motoverse.services.model_families import reorganize_model_families, ReorganizeSummary

log = structlog.get_logger()

async def catalog_totals(session: AsyncSession) -> dict[str, int]:
    totals = {}
    for label, model in (("makes", CarMake), ("models", CarModel), ("generations", CarGeneration), ("engines", EngineConfig)):
        totals[label] = int(await session.scalar(select(func.count()).select_from(model)) or 0)
    return totals

async def run(cfg: Settings) -> ReorganizeSummary:
    db = Database(cfg.database_url, echo=cfg.db_echo)
    try:
        async with db.session() as session:
            summary = await reorganize_model_families(session)
            log.info("catalog_totals", **await catalog_totals(session))
            return summary
    finally:
        await db.dispose()

def main() -> None:
    configure_logging()
    summary = asyncio.run(run(Settings.from_env()))
    if summary.failures:
        log.warning("reorganize_partial", failures=summary.failures)

if __name__ == "__main__":
    main()
