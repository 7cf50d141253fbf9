#!/usr/bin/env python3
"""
Tour 批量导入脚本

从导出文件导入 Tour，不合格的 Tour 被跳过并列出错误。

使用方式:
    python scripts/import_tours.py tours-export.json --dry-run
    python scripts/import_tours.py tours-export.json --edition pro
"""

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path

import structlog

from panotour.core.config import settings
from panotour.core.errors import MalformedDocumentError
from panotour.core.limits import get_tier_limits
from panotour.core.logging import setup_logging
from panotour.database.engine import async_session_maker, close_db, init_db
from panotour.repository import InMemoryTourRepository, SqlAlchemyTourRepository
from panotour.services import ImportReport, TourService

logger = structlog.get_logger(__name__)


async def import_tours(path: Path, edition: str, dry_run: bool = False) -> ImportReport:
    """
    导入文件中的 Tour

    Args:
        path: 导出文件路径
        edition: lite / pro
        dry_run: 只校验，写入内存仓储而不是数据库
    """
    limits = get_tier_limits(settings.model_copy(update={"EDITION": edition}))
    raw = path.read_bytes()

    if dry_run:
        # dry-run 不检查 Tour 数量上限
        service = TourService(InMemoryTourRepository(), replace(limits, max_tours=None))
        return await service.import_document(raw)

    await init_db(create_tables=True)
    try:
        async with async_session_maker() as session:
            service = TourService(SqlAlchemyTourRepository(session), limits)
            report = await service.import_document(raw)
            await session.commit()
    finally:
        await close_db()

    logger.info("import_script_complete", path=str(path), imported=len(report.imported_ids))
    return report


async def main() -> int:
    parser = argparse.ArgumentParser(description="从导出文件导入 Tour")
    parser.add_argument("path", type=Path, help="导出的 JSON 文件")
    parser.add_argument("--edition", choices=["lite", "pro"], default=settings.EDITION, help="版本限额")
    parser.add_argument("--dry-run", action="store_true", help="只校验，不写入数据库")

    args = parser.parse_args()
    setup_logging()

    print(f"\n📦 Tour 导入")
    print(f"   文件: {args.path}")
    print(f"   版本: {args.edition}")
    print(f"   模式: {'DRY RUN' if args.dry_run else 'LIVE'}")
    print()

    try:
        report = await import_tours(args.path, args.edition, dry_run=args.dry_run)
    except MalformedDocumentError as e:
        print(f"❌ 导入失败: {e.message}")
        return 1

    print(f"✅ 导入: {len(report.imported_ids)}")
    print(f"⚠️  跳过: {report.skipped}")
    for error in report.errors:
        print(f"   - {error}")
    return 0 if not report.errors else 2


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
