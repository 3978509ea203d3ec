import logging
from io import BytesIO

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

from farmtrack.core.aggregation import OVERTIME_THRESHOLD, WeeklySummary
from farmtrack.utils.formatting import WEEKDAYS

logger = logging.getLogger(__name__)


class ChartBuilder:
    """Построение графиков рабочего времени"""

    def __init__(self, dpi: int = 150):
        """
        :param dpi: Разрешение изображений
        """
        self.dpi = dpi
        sns.set_theme(style="whitegrid")

    def weekly_hours_chart(self, summary: WeeklySummary) -> bytes:
        """
        Столбчатая диаграмма часов по дням недели

        На столбце итога за неделю отмечен порог сверхурочных.

        :param summary: Сводка за неделю
        :return: Изображение в формате PNG
        """
        days = sorted(summary.daily_hours)
        labels = [f"{WEEKDAYS[day.weekday()]}\n{day.strftime('%d.%m')}" for day in days]
        hours = [summary.daily_hours[day] for day in days]

        fig, (daily_ax, total_ax) = plt.subplots(
            1, 2,
            figsize=(10, 4),
            gridspec_kw={"width_ratios": [4, 1]}
        )
        try:
            sns.barplot(x=labels, y=hours, color="seagreen", ax=daily_ax)
            daily_ax.set_title("Часы по дням")
            daily_ax.set_ylabel("Часы")

            total_color = "firebrick" if summary.is_overtime else "steelblue"
            total_ax.bar(["Неделя"], [summary.total_hours], color=total_color)
            total_ax.axhline(OVERTIME_THRESHOLD, color="orange", linestyle="--", label=f"{OVERTIME_THRESHOLD:g} ч")
            total_ax.set_ylim(0, max(summary.total_hours, OVERTIME_THRESHOLD) * 1.15)
            total_ax.set_title("Итого")
            total_ax.legend(loc="lower right")

            fig.suptitle(
                f"Неделя {summary.week_start.strftime('%d.%m.%Y')} - "
                f"{summary.week_end.strftime('%d.%m.%Y')}"
            )
            fig.tight_layout()

            buffer = BytesIO()
            fig.savefig(buffer, format="png", dpi=self.dpi)
        finally:
            plt.close(fig)

        logger.info(f"Построен график за неделю с {summary.week_start} для работника {summary.worker_id}")
        return buffer.getvalue()


# Глобальный экземпляр построителя графиков
chart_builder = ChartBuilder()
