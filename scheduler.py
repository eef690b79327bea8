"""
Forecast Scheduler — explicit, caller-owned refresh of predictions.

Runs (platform, prediction type) jobs concurrently on a thread pool.
Nothing starts on import and there is no module-level timer: the
process that wants periodic refreshes creates a scheduler and calls
``run_forever`` with its own stop event.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import config
from forecast_generator import TrendForecaster
from prediction_store import Prediction, PREDICTION_TYPES
from records import SUPPORTED_PLATFORMS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobResult:
    platform: str
    prediction_type: str
    prediction: Optional[Prediction] = None
    error: Optional[str] = None


def default_jobs() -> List[Tuple[str, str]]:
    """Every supported platform crossed with every prediction type."""
    return [(platform, kind) for platform in SUPPORTED_PLATFORMS for kind in PREDICTION_TYPES]


class ForecastScheduler:
    """Runs forecast jobs in parallel; each job is independent."""

    def __init__(self, forecaster: TrendForecaster,
                 jobs: Optional[Iterable[Tuple[str, str]]] = None,
                 max_workers: Optional[int] = None):
        self.forecaster = forecaster
        self.jobs = list(jobs) if jobs is not None else default_jobs()
        self.max_workers = max_workers or config.SCHEDULER_MAX_WORKERS

    def _run_job(self, platform: str, prediction_type: str) -> JobResult:
        try:
            prediction = self.forecaster.predict(prediction_type, platform)
            return JobResult(platform, prediction_type, prediction=prediction)
        except Exception as e:
            return JobResult(platform, prediction_type, error=str(e))

    def run_once(self) -> List[JobResult]:
        """Run every job once and collect results in completion order."""
        if not self.jobs:
            return []

        results = []
        workers = min(self.max_workers, len(self.jobs))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._run_job, platform, kind): (platform, kind)
                for platform, kind in self.jobs
            }
            for future in as_completed(futures):
                result = future.result()
                results.append(result)
                if result.error:
                    logger.error(
                        f"  Forecast {result.platform}/{result.prediction_type} failed: {result.error}"
                    )
                else:
                    logger.info(
                        f"  Forecast {result.platform}/{result.prediction_type}: "
                        f"{len(result.prediction.predictions)} categories "
                        f"({result.prediction.source})"
                    )

        failed = sum(1 for r in results if r.error)
        logger.info(f"Scheduler run complete: {len(results) - failed} ok, {failed} failed")
        return results

    def run_forever(self, stop_event: threading.Event,
                    interval_seconds: Optional[float] = None) -> int:
        """
        Run jobs every ``interval_seconds`` until ``stop_event`` is set.

        Returns the number of completed runs.
        """
        if interval_seconds is None:
            interval_seconds = config.SCHEDULER_INTERVAL_MINUTES * 60

        runs = 0
        while not stop_event.is_set():
            self.run_once()
            runs += 1
            if stop_event.wait(interval_seconds):
                break
        logger.info(f"Scheduler stopped after {runs} runs")
        return runs
