"""Fixed-width blood gas report rendering.

Every lookup on the generated record falls back to an empty string, so a
partial or empty record still renders all labels, units and reference
ranges.
"""

import random
import re
import textwrap
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from gasreport.jobs.models import SampleType

REPORT_WIDTH = 56
WRAP_WIDTH = REPORT_WIDTH - 2
SEPARATOR = "─" * REPORT_WIDTH

LABEL_COL = 18
VALUE_COL = 12
UNIT_COL = 11


@dataclass(frozen=True)
class Analyte:
    key: str
    label: str
    unit: str = ""
    reference: str = ""


# pH / PCO₂ / PO₂ are the only ranges that depend on the sample type
_GAS_ANALYTES = {
    SampleType.ARTERIAL: (
        Analyte("ph", "pH", "", "(7.350 - 7.450)"),
        Analyte("pco2", "PCO₂", "kPa", "(4.67 - 6.00)"),
        Analyte("po2", "PO₂", "kPa", "(10.67 - 13.33)"),
    ),
    SampleType.VENOUS: (
        Analyte("ph", "pH", "", "(7.310 - 7.410)"),
        Analyte("pco2", "PCO₂", "kPa", "(5.30 - 6.70)"),
        Analyte("po2", "PO₂", "kPa", "(4.00 - 6.70)"),
    ),
}

_SHARED_SECTIONS: Tuple[Tuple[Analyte, ...], ...] = (
    (
        Analyte("na", "Na⁺", "mmol/L", "(135.0 - 148.0)"),
        Analyte("k", "K⁺", "mmol/L", "(3.50 - 4.50)"),
        Analyte("cl", "Cl⁻", "mmol/L", "(98.0 - 107.0)"),
        Analyte("ca", "Ca²⁺", "mmol/L", "(1.120 - 1.320)"),
    ),
    (
        Analyte("hct", "HCT", "%", "(35.0 – 50.0)"),
    ),
    (
        Analyte("glucose", "Glucose", "mmol/L", "(3.3 – 6.1)"),
        Analyte("lactate", "Lactate", "mmol/L", "(0.4 – 2.2)"),
    ),
    (
        Analyte("thb", "tHb", "g/dL", "(11.5 – 17.4)"),
        Analyte("o2hb", "O₂ Hb", "%", "(95.0 – 99.0)"),
        Analyte("cohb", "COHb", "%", "(0.5 – 2.5)"),
        Analyte("hhb", "HHb", "%", "(1.0 – 5.0)"),
        Analyte("methb", "MetHb", "%", "(0.4 – 1.5)"),
    ),
    (
        Analyte("be", "BE", "mmol/L", "(-2.3 – 2.3)"),
        Analyte("chco3", "cHCO₃", "mmol/L"),
        Analyte("aado2", "AaDO₂", "kPa"),
        Analyte("so2", "SO₂", "%", "(75.0 – 99.0)"),
        Analyte("chco3st", "cHCO₃ st", "mmol/L", "(22.4 – 25.8)"),
        Analyte("p50", "P50", "kPa"),
        Analyte("cto2", "ctO₂", "Vol %"),
    ),
)

_AGE_RE = re.compile(r"\b(\d{1,3})[\s-]*(?:year[\s-]old|yo|y/o)\b", re.IGNORECASE)


def _value(record: Dict[str, Any], key: str) -> str:
    value = record.get(key) if isinstance(record, dict) else None
    if value is None:
        return ""
    return str(value).strip()


def _sample_type(sample_type) -> SampleType:
    """Venous only when asked for; anything else renders as arterial."""
    raw = getattr(sample_type, "value", sample_type)
    return SampleType.VENOUS if raw == SampleType.VENOUS.value else SampleType.ARTERIAL


def reference_ranges(sample_type) -> List[Analyte]:
    """All analytes in report order, with ranges for the given sample type."""
    analytes = list(_GAS_ANALYTES[_sample_type(sample_type)])
    for section in _SHARED_SECTIONS:
        analytes.extend(section)
    return analytes


def format_line(label: str, value: Optional[str], unit: str = "", reference: str = "") -> str:
    return (
        f"{label.ljust(LABEL_COL)}"
        f"{(value or '').ljust(VALUE_COL)}"
        f"{unit.ljust(UNIT_COL)}"
        f"{reference}\n"
    )


def wrap_text(text: str, width: int = WRAP_WIDTH) -> List[str]:
    return textwrap.wrap(text or "", width=width, break_long_words=True)


def _boxed(lines: List[str]) -> str:
    return "".join(f"│ {line.ljust(WRAP_WIDTH)} │\n" for line in lines)


def format_report(
    record: Dict[str, Any],
    sample_type,
    scenario: str,
    date_of_birth: Optional[str] = None,
) -> str:
    """Render a generated record as a fixed-width analyser printout.

    Args:
        record: flat field -> value mapping from the model; may be partial
        sample_type: SampleType or its string value; selects gas ranges
        scenario: original free-text scenario, echoed in the box
        date_of_birth: pre-computed DOB string (see date_of_birth_from_scenario)
    """
    record = record if isinstance(record, dict) else {}
    kind = _sample_type(sample_type)
    label = getattr(sample_type, "value", sample_type) or kind.value

    out = [
        "Blood Gas".center(REPORT_WIDTH).rstrip() + "\n",
        "Emergency Department".center(REPORT_WIDTH).rstrip() + "\n",
        SEPARATOR + "\n",
        f"{'Patient ID:'.ljust(LABEL_COL)}{_value(record, 'patientId')}\n",
        f"{'Last Name'.ljust(LABEL_COL)}{_value(record, 'lastName')}\n",
        f"{'First Name'.ljust(LABEL_COL)}{_value(record, 'firstName')}\n",
        f"{'Date of Birth'.ljust(LABEL_COL)}{date_of_birth or ''}\n",
        f"{'Temperature'.ljust(LABEL_COL)}{_value(record, 'temperature')} ° C\n",
        f"{'FIO₂'.ljust(LABEL_COL)}{_value(record, 'fio2')}\n",
        f"{'R'.ljust(LABEL_COL)}{_value(record, 'r')}\n",
        f"{'Sample type'.ljust(LABEL_COL)}Blood\n",
        f"{'Blood Type'.ljust(LABEL_COL)}{label}\n",
        SEPARATOR + "\n",
    ]

    for analyte in _GAS_ANALYTES[kind]:
        out.append(format_line(analyte.label, _value(record, analyte.key), analyte.unit, analyte.reference))

    for section in _SHARED_SECTIONS:
        out.append(SEPARATOR + "\n")
        for analyte in section:
            out.append(format_line(analyte.label, _value(record, analyte.key), analyte.unit, analyte.reference))

    interpretation = _value(record, "interpretation") or "Not provided"
    out.extend([
        "\n\n",
        "┌" + "─" * REPORT_WIDTH + "┐\n",
        _boxed(["Interpretation"]),
        "├" + "─" * REPORT_WIDTH + "┤\n",
        _boxed(wrap_text(f"Scenario: {scenario or ''}")),
        _boxed([""]),
        _boxed(wrap_text(f"Interpretation: {interpretation}")),
        "└" + "─" * REPORT_WIDTH + "┘\n",
    ])
    return "".join(out)


def date_of_birth_from_scenario(
    scenario: str,
    today: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """DD/MM/YYYY birth date consistent with the age stated in the scenario.

    Age comes from phrases like "68 year old", "68-year-old", "68 yo" or
    "68 y/o"; without one a random adult age (18-90) is used. Month and
    day are random, day capped at 28.
    """
    today = today or date.today()
    rng = rng or random.Random()

    match = _AGE_RE.search(scenario or "")
    age = int(match.group(1)) if match else rng.randint(18, 90)

    month = rng.randint(1, 12)
    day = rng.randint(1, 28)
    return f"{day:02d}/{month:02d}/{today.year - age}"
