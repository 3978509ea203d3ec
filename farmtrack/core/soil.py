import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple, Union

from farmtrack.core.entities import SoilTest

# Анализ считается актуальным в течение трёх лет
RECENT_TEST_DAYS = 1095
AGING_TEST_DAYS = 365

UNKNOWN_LEVEL = "Unknown"


class Status(str, Enum):
    """Оценка показателя почвы"""
    GOOD = "good"
    WARNING = "warning"
    POOR = "poor"


class NutrientType(Enum):
    """Показатели с таблицами уровней Low/Medium/High"""
    PHOSPHORUS = "phosphorus"
    POTASSIUM = "potassium"
    CEC = "cec"
    ORGANIC_MATTER = "organic_matter"

    @property
    def display_name(self) -> str:
        return {
            NutrientType.PHOSPHORUS: "Phosphorus",
            NutrientType.POTASSIUM: "Potassium",
            NutrientType.CEC: "CEC",
            NutrientType.ORGANIC_MATTER: "Organic Matter",
        }[self]

    @property
    def unit(self) -> str:
        return {
            NutrientType.PHOSPHORUS: " ppm",
            NutrientType.POTASSIUM: " ppm",
            NutrientType.CEC: " meq/100g",
            NutrientType.ORGANIC_MATTER: "%",
        }[self]

    @property
    def ranges(self) -> List[Tuple[float, float, str]]:
        """Полуоткрытые интервалы [нижняя, верхняя) без пропусков от нуля"""
        return NUTRIENT_RANGES[self]


NUTRIENT_RANGES = {
    NutrientType.PHOSPHORUS: [
        (0.0, 15.0, "Low"),
        (15.0, 30.0, "Medium"),
        (30.0, math.inf, "High"),
    ],
    NutrientType.POTASSIUM: [
        (0.0, 100.0, "Low"),
        (100.0, 200.0, "Medium"),
        (200.0, math.inf, "High"),
    ],
    NutrientType.CEC: [
        (0.0, 10.0, "Low"),
        (10.0, 20.0, "Medium"),
        (20.0, math.inf, "High"),
    ],
    NutrientType.ORGANIC_MATTER: [
        (0.0, 2.0, "Low"),
        (2.0, 3.0, "Medium"),
        (3.0, math.inf, "High"),
    ],
}


@dataclass(frozen=True)
class Interpretation:
    """Карточка интерпретации одного аспекта анализа"""
    title: str
    interpretation: str
    recommendations: str
    status: Status


@dataclass(frozen=True)
class TestAge:
    """Возраст анализа"""
    days: int
    display: str

    __test__ = False


@dataclass(frozen=True)
class SoilReport:
    """Полная интерпретация анализа почвы"""
    soil_test: SoilTest
    age: TestAge
    is_recent: bool
    cards: List[Interpretation]

    @property
    def lab_notes(self) -> Optional[str]:
        return self.soil_test.notes


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def _as_datetime(value: Union[date, datetime], reference: datetime) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None and reference.tzinfo is not None:
            return value.replace(tzinfo=reference.tzinfo)
        return value
    return datetime.combine(value, datetime.min.time(), tzinfo=reference.tzinfo)


class SoilHealthInterpreter:
    """Правила оценки показателей анализа почвы"""

    @staticmethod
    def ph_status(ph: float) -> Status:
        if 6.0 <= ph <= 7.5:
            return Status.GOOD
        if 5.5 <= ph < 6.0 or 7.5 < ph <= 8.0:
            return Status.WARNING
        return Status.POOR

    @staticmethod
    def ph_interpretation(ph: float) -> str:
        if ph < 5.5:
            return ("Very acidic soil conditions. Many nutrients become unavailable, "
                    "and aluminum toxicity may occur.")
        if ph < 6.0:
            return ("Moderately acidic. Good for acid-loving crops like blueberries, "
                    "potatoes, and rhododendrons.")
        if ph <= 7.0:
            return ("Optimal pH range for most vegetable crops. Maximum nutrient "
                    "availability and beneficial microbial activity.")
        if ph <= 7.5:
            return ("Slightly alkaline. Good for brassicas and legumes. "
                    "Most nutrients remain available.")
        if ph <= 8.0:
            return "Moderately alkaline. Iron and manganese may become less available."
        return ("Very alkaline conditions. Significant nutrient deficiencies likely, "
                "especially iron and phosphorus.")

    @staticmethod
    def ph_recommendation(ph: float) -> str:
        if ph < 5.5:
            return "Apply agricultural lime to raise pH. Consider sulfur for acid-loving plants only."
        if ph < 6.0:
            return "Light lime application if growing most vegetables. Perfect for acid-loving crops."
        if ph <= 7.5:
            return "Maintain current pH with balanced organic matter additions."
        return "Apply sulfur or organic acids to lower pH. Improve drainage if applicable."

    @staticmethod
    def organic_matter_status(om: float) -> Status:
        if om < 2.0:
            return Status.POOR
        if om < 3.0:
            return Status.WARNING
        return Status.GOOD

    @staticmethod
    def om_interpretation(om: float) -> str:
        if om < 2.0:
            return "Low organic matter indicates poor soil biology and limited nutrient cycling capacity."
        if om < 3.0:
            return "Moderate organic matter. Soil biology is developing but needs continued organic inputs."
        if om <= 5.0:
            return "Good organic matter levels support healthy soil biology and natural nutrient cycling."
        return "Excellent organic matter content. Very active soil biology and superior nutrient retention."

    @staticmethod
    def om_recommendation(om: float) -> str:
        if om < 2.0:
            return ("Increase compost applications, plant cover crops, reduce tillage, "
                    "and add organic amendments.")
        if om < 3.0:
            return "Continue building with compost, mulch heavily, and maintain cover crops."
        return "Maintain with light compost applications and organic farming practices."

    @staticmethod
    def nutrient_level(value: float, nutrient_type: NutrientType) -> str:
        """
        Уровень показателя по таблице порогов

        :param value: Значение показателя
        :param nutrient_type: Тип показателя
        :return: Low, Medium, High или Unknown вне таблицы
        """
        for lower, upper, label in nutrient_type.ranges:
            if lower <= value < upper:
                return label
        return UNKNOWN_LEVEL

    @classmethod
    def nutrient_level_text(cls, value: float, nutrient_type: NutrientType) -> str:
        level = cls.nutrient_level(value, nutrient_type)
        name = nutrient_type.display_name.lower()
        if level == "Low":
            return f"May need {name} supplementation"
        if level == "Medium":
            return f"Adequate {name} levels"
        if level == "High":
            return f"Sufficient {name} for most crops"
        return "Out of typical range"

    @staticmethod
    def overall_nutrient_status(p: float, k: float, cec: float) -> Status:
        score = (1 if p >= 15 else 0) + (1 if k >= 100 else 0) + (1 if cec >= 10 else 0)
        if score == 3:
            return Status.GOOD
        if score >= 1:
            return Status.WARNING
        return Status.POOR

    @classmethod
    def nutrient_summary(cls, p: float, k: float, cec: float) -> str:
        return (
            f"Phosphorus: {cls.nutrient_level(p, NutrientType.PHOSPHORUS)}, "
            f"Potassium: {cls.nutrient_level(k, NutrientType.POTASSIUM)}, "
            f"CEC: {cls.nutrient_level(cec, NutrientType.CEC)}. "
            "CEC indicates the soil's capacity to hold and exchange nutrients."
        )

    @staticmethod
    def nutrient_recommendations(p: float, k: float, cec: float) -> str:
        recommendations = []
        if p < 15:
            recommendations.append("Add phosphorus through bone meal or rock phosphate")
        if k < 100:
            recommendations.append("Increase potassium with wood ash or greensand")
        if cec < 10:
            recommendations.append("Build CEC with organic matter and clay amendments")
        if not recommendations:
            return "Maintain current nutrient levels with balanced fertilization"
        return ". ".join(recommendations)

    @staticmethod
    def soil_biology_status(om: float, ph: float) -> Status:
        om_good = om >= 3.0
        ph_good = 6.0 <= ph <= 7.5
        if om_good and ph_good:
            return Status.GOOD
        if om_good or ph_good:
            return Status.WARNING
        return Status.POOR

    @staticmethod
    def biology_interpretation(om: float, ph: float) -> str:
        if om >= 3.0 and 6.0 <= ph <= 7.5:
            return ("Excellent conditions for soil microorganisms. High organic matter and "
                    "optimal pH support diverse microbial communities.")
        if om >= 2.0 and 5.5 <= ph <= 8.0:
            return ("Good soil biology potential. Conditions support beneficial "
                    "microorganisms with some limitations.")
        return ("Soil biology may be limited by low organic matter or pH extremes. "
                "Microorganism diversity and activity likely reduced.")

    @staticmethod
    def biology_recommendations(om: float, ph: float) -> str:
        recommendations = []
        if om < 3.0:
            recommendations.append("Increase organic matter to feed soil microorganisms")
        if ph < 6.0 or ph > 7.5:
            recommendations.append("Adjust pH to optimize microbial activity")
        recommendations.append("Minimize chemical inputs that harm beneficial microbes")
        recommendations.append("Use compost and mycorrhizal inoculants")
        return ". ".join(recommendations)

    @staticmethod
    def test_age(test_date: Union[date, datetime], now: datetime) -> TestAge:
        """
        Возраст анализа в днях и в виде строки

        :param test_date: Дата анализа
        :param now: Текущий момент
        :return: Возраст анализа; будущие даты считаются сегодняшними
        """
        elapsed = now - _as_datetime(test_date, now)
        days = max(0, int(elapsed.total_seconds() // 86400))

        if days < 30:
            display = _plural(days, "day")
        elif days < 365:
            display = _plural(days // 30, "month")
        else:
            display = _plural(days // 365, "year")
        return TestAge(days=days, display=display)

    @classmethod
    def is_recent_test(cls, test_date: Union[date, datetime], now: datetime) -> bool:
        return cls.test_age(test_date, now).days <= RECENT_TEST_DAYS

    @classmethod
    def test_freshness(cls, test_date: Union[date, datetime], now: datetime) -> str:
        """recent до года, aging до трёх лет, stale для более старых анализов"""
        days = cls.test_age(test_date, now).days
        if days < AGING_TEST_DAYS:
            return "recent"
        if days < RECENT_TEST_DAYS:
            return "aging"
        return "stale"

    @classmethod
    def interpret(cls, soil_test: SoilTest, now: datetime) -> SoilReport:
        """
        Полная интерпретация анализа почвы

        :param soil_test: Анализ почвы
        :param now: Текущий момент для расчёта возраста анализа
        :return: Отчёт с карточками pH, органики, питательных веществ и биологии
        """
        ph = soil_test.ph
        om = soil_test.organic_matter
        p = soil_test.phosphorus_ppm
        k = soil_test.potassium_ppm
        cec = soil_test.cec

        cards = [
            Interpretation(
                title="pH Level",
                interpretation=cls.ph_interpretation(ph),
                recommendations=cls.ph_recommendation(ph),
                status=cls.ph_status(ph)
            ),
            Interpretation(
                title="Organic Matter",
                interpretation=cls.om_interpretation(om),
                recommendations=cls.om_recommendation(om),
                status=cls.organic_matter_status(om)
            ),
            Interpretation(
                title="Nutrient Status",
                interpretation=cls.nutrient_summary(p, k, cec),
                recommendations=cls.nutrient_recommendations(p, k, cec),
                status=cls.overall_nutrient_status(p, k, cec)
            ),
            Interpretation(
                title="Soil Biology",
                interpretation=cls.biology_interpretation(om, ph),
                recommendations=cls.biology_recommendations(om, ph),
                status=cls.soil_biology_status(om, ph)
            ),
        ]

        return SoilReport(
            soil_test=soil_test,
            age=cls.test_age(soil_test.test_date, now),
            is_recent=cls.is_recent_test(soil_test.test_date, now),
            cards=cards
        )


# Глобальный экземпляр интерпретатора
soil_interpreter = SoilHealthInterpreter()
