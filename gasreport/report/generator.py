"""Scenario -> prompt -> generated record -> formatted report."""

import random
from datetime import date
from typing import Callable, Optional

from gasreport.generation.prompts import build_prompt
from gasreport.jobs.models import SampleType
from gasreport.report.formatter import date_of_birth_from_scenario, format_report


class ReportGenerator:
    """Produces the finished report text for one scenario.

    client: anything with `async generate_record(prompt) -> dict`
        (GeminiClient in production, a fake in tests).
    """

    def __init__(
        self,
        client,
        rng: Optional[random.Random] = None,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self._rng = rng or random.Random()
        self._today = today

    async def generate(self, scenario: str, sample_type: SampleType) -> str:
        sample_type = SampleType(sample_type)
        record = await self.client.generate_record(build_prompt(scenario, sample_type.value))
        dob = date_of_birth_from_scenario(scenario, today=self._today(), rng=self._rng)
        return format_report(record, sample_type, scenario, date_of_birth=dob)
