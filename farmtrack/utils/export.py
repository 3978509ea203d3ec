import os
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Dict, Any, List

import aiofiles
import pandas as pd

from farmtrack.core.clock import Clock
from farmtrack.core.entities import TimeBlock, Worker

logger = logging.getLogger(__name__)

COLUMNS = ["date", "block", "clock_in", "clock_out", "hours", "status"]


class ExportManager:
    """Менеджер экспорта отметок рабочего времени"""

    def __init__(self, export_dir: Optional[Path] = None, clock: Optional[Clock] = None):
        """
        Инициализация менеджера экспорта

        :param export_dir: Директория для файлов экспорта
        :param clock: Часы фермы для перевода времени отметок
        """
        self.export_dir = Path(export_dir or os.getenv("EXPORT_DIR", "exports"))
        self.export_dir.mkdir(parents=True, exist_ok=True)
        self.clock = clock or Clock()

        # Поддерживаемые форматы
        self.formats = {
            "csv": self._export_to_csv,
            "json": self._export_to_json,
            "xlsx": self._export_to_excel
        }

    def _rows(self, blocks: List[TimeBlock]) -> List[Dict[str, Any]]:
        now = self.clock.now()
        rows = []
        for block in blocks:
            clock_out = (
                self.clock.to_local(block.clock_out_time).strftime("%H:%M")
                if block.clock_out_time
                else None
            )
            rows.append({
                "date": block.work_date.isoformat(),
                "block": block.block_number,
                "clock_in": self.clock.to_local(block.clock_in_time).strftime("%H:%M"),
                "clock_out": clock_out,
                "hours": round(block.live_hours(now), 2),
                "status": "active" if block.is_open else "completed"
            })
        return rows

    def _file_path(self, worker: Worker, extension: str) -> Path:
        return self.export_dir / f"export_{worker.id}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{extension}"

    async def export_blocks(
        self,
        worker: Worker,
        blocks: List[TimeBlock],
        export_format: str = "csv"
    ) -> Optional[Path]:
        """
        Экспорт блоков рабочего времени

        :param worker: Работник
        :param blocks: Блоки для выгрузки
        :param export_format: Формат экспорта (csv, json, xlsx)
        :return: Путь к файлу экспорта или None, если выгружать нечего
        :raises ValueError: Для неподдерживаемого формата
        """
        if export_format not in self.formats:
            raise ValueError(f"Неподдерживаемый формат: {export_format}")

        if not blocks:
            return None

        file_path = await self.formats[export_format](self._rows(blocks), worker)
        logger.info(f"Экспортировано {len(blocks)} блоков работника {worker.id} в {file_path}")
        return file_path

    async def _export_to_csv(self, data: List[Dict[str, Any]], worker: Worker) -> Path:
        """
        Экспорт в CSV

        :param data: Данные для экспорта
        :param worker: Работник
        :return: Путь к файлу
        """
        file_path = self._file_path(worker, "csv")
        content = pd.DataFrame(data, columns=COLUMNS).to_csv(index=False)

        async with aiofiles.open(file_path, mode='w', newline='', encoding='utf-8') as f:
            await f.write(content)

        return file_path

    async def _export_to_json(self, data: List[Dict[str, Any]], worker: Worker) -> Path:
        """
        Экспорт в JSON

        :param data: Данные для экспорта
        :param worker: Работник
        :return: Путь к файлу
        """
        file_path = self._file_path(worker, "json")
        payload = {
            "worker": {"id": worker.id, "name": worker.name},
            "total_hours": round(sum(row["hours"] for row in data), 2),
            "blocks": data
        }

        async with aiofiles.open(file_path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(payload, ensure_ascii=False, indent=2))

        return file_path

    async def _export_to_excel(self, data: List[Dict[str, Any]], worker: Worker) -> Path:
        """
        Экспорт в Excel

        :param data: Данные для экспорта
        :param worker: Работник
        :return: Путь к файлу
        """
        file_path = self._file_path(worker, "xlsx")
        df = pd.DataFrame(data, columns=COLUMNS)

        with pd.ExcelWriter(file_path, engine='xlsxwriter') as writer:
            df.to_excel(writer, sheet_name='TimeBlocks', index=False)

            workbook = writer.book
            worksheet = writer.sheets['TimeBlocks']

            header_format = workbook.add_format({
                'bold': True,
                'text_wrap': True,
                'valign': 'top',
                'bg_color': '#D7E4BC',
                'border': 1
            })
            hours_format = workbook.add_format({'num_format': '0.00'})
            total_format = workbook.add_format({'bold': True, 'num_format': '0.00'})

            for col_num, value in enumerate(df.columns.values):
                worksheet.write(0, col_num, value, header_format)

            worksheet.set_column('A:A', 12)  # date
            worksheet.set_column('B:B', 8)  # block
            worksheet.set_column('C:D', 10)  # clock_in, clock_out
            worksheet.set_column('E:E', 10, hours_format)  # hours
            worksheet.set_column('F:F', 12)  # status

            # Строка итога под таблицей
            total_row = len(df) + 1
            worksheet.write(total_row, 3, "Итого", header_format)
            worksheet.write_number(total_row, 4, float(df["hours"].sum()), total_format)

        return file_path

    async def cleanup_old_exports(self, days: int = 7) -> int:
        """
        Очистка старых файлов экспорта

        :param days: Количество дней хранения
        :return: Количество удалённых файлов
        """
        cutoff_date = datetime.now() - timedelta(days=days)
        removed = 0

        for file in self.export_dir.glob("export_*"):
            if file.stat().st_mtime < cutoff_date.timestamp():
                file.unlink()
                removed += 1
                logger.info(f"Удален старый файл экспорта: {file}")

        return removed

