"""Fakes shared by the test modules."""
import asyncio
from typing import Any, Dict, List, Optional

from gasreport.errors import StoreError
from gasreport.jobs.dispatcher import JobDispatcher
from gasreport.jobs.store import InMemoryJobStore


SAMPLE_RECORD: Dict[str, Any] = {
    "patientId": "483920",
    "lastName": "Jones",
    "firstName": "Arthur",
    "bloodType": "Arterial",
    "temperature": "37.2",
    "fio2": "0.28",
    "r": "0.80",
    "ph": "7.28",
    "pco2": "8.40",
    "po2": "7.90",
    "na": "139",
    "k": "4.6",
    "cl": "98",
    "ca": "1.18",
    "hct": "49",
    "glucose": "7.1",
    "lactate": "1.6",
    "thb": "16.2",
    "o2hb": "88.5",
    "cohb": "2.1",
    "hhb": "8.8",
    "methb": "0.6",
    "be": "4.5",
    "chco3": "29.5",
    "aado2": "3.1",
    "so2": "90.9",
    "chco3st": "27.0",
    "p50": "3.6",
    "cto2": "19.8",
    "interpretation": "Acute on chronic respiratory acidosis with hypoxaemia",
}


class FakeGenerationClient:
    """Stands in for GeminiClient.generate_record."""

    def __init__(self, record: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.record = record if record is not None else dict(SAMPLE_RECORD)
        self.error = error
        self.prompts: List[str] = []

    async def generate_record(self, prompt: str) -> Dict[str, Any]:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return dict(self.record)


class FakeGenerator:
    """Stands in for ReportGenerator."""

    def __init__(self, report: str = "REPORT", error: Optional[Exception] = None):
        self.report = report
        self.error = error
        self.calls: List[tuple] = []

    async def generate(self, scenario, sample_type) -> str:
        self.calls.append((scenario, sample_type))
        if self.error:
            raise self.error
        return f"{self.report} {sample_type.value} {scenario}"


class RecordingDispatcher(JobDispatcher):
    def __init__(self, error: Optional[Exception] = None):
        self.dispatched: List[str] = []
        self.error = error

    async def dispatch(self, job_id: str) -> None:
        self.dispatched.append(job_id)
        if self.error:
            raise self.error


class FlakyStore(InMemoryJobStore):
    """In-memory store whose writes start failing after `ok_writes` writes."""

    def __init__(self, ok_writes: int = 0):
        super().__init__()
        self.ok_writes = ok_writes
        self.writes = 0

    async def set_json(self, key, value):
        self.writes += 1
        if self.writes > self.ok_writes:
            raise StoreError("store unavailable")
        await super().set_json(key, value)


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


async def wait_for_terminal(service, job_id: str, attempts: int = 300) -> Dict[str, Any]:
    """Poll get_status until the job leaves "processing"."""
    status = await service.get_status(job_id)
    for _ in range(attempts):
        if status["status"] != "processing":
            break
        await asyncio.sleep(0.01)
        status = await service.get_status(job_id)
    return status
