"""
Per-product forecasting pipeline

Orchestrates, for each product independently:
    split -> fit all candidates -> evaluate on holdout -> select -> refit -> forecast

Products run concurrently on a thread pool; within a product the candidate
fitters run on a second, bounded pool. An optional run deadline marks
unfinished products as timed out while keeping every completed outcome.
"""

import logging
import time
import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Dict, List, Optional, Sequence, Tuple

from .config import ForecastConfig
from .errors import FitError, InsufficientDataError, NoEligibleModelError, RunTimeoutError
from .evaluation import MetricRecord, evaluate
from .models import FittedModel, ForecastModel, ModelFactory
from .report import ForecastReport, ProductOutcome, ProductStatus
from .selection import ModelSelector
from .series_store import DemandSeries, SeriesStore
from .splitting import HoldoutSplit, HoldoutSplitter

logger = logging.getLogger(__name__)


def fit_and_evaluate(
    model: ForecastModel,
    holdout_split: HoldoutSplit,
    log_transform: bool = False
) -> Tuple[MetricRecord, Optional[FittedModel]]:
    """Fit one candidate on the training window and score it on the holdout"""
    product_id = holdout_split.product_id
    start_time = time.time()

    try:
        fitted = model.fit(holdout_split.train, log_transform=log_transform)
    except FitError as e:
        logger.warning(f"{product_id}: {e}")
        return MetricRecord.failed(product_id, model.name, str(e)), None

    record = evaluate(fitted, holdout_split.holdout, product_id=product_id)
    logger.debug(
        f"{product_id}: {model.name} rmse={record.rmse} "
        f"({time.time() - start_time:.2f}s)"
    )
    return record, fitted


def run_product(
    series: DemandSeries,
    config: ForecastConfig,
    models: Optional[Sequence[ForecastModel]] = None
) -> ProductOutcome:
    """
    Run one product's pipeline to a terminal state

    Returns:
        ProductOutcome with status forecasted, excluded (InsufficientDataError)
        or failed (NoEligibleModelError)
    """
    start_time = time.time()
    product_id = series.product_id
    if models is None:
        models = ModelFactory.from_config(config)

    splitter = HoldoutSplitter(
        holdout_length=config.holdout_length,
        policy=config.split_policy,
        min_train_size=config.min_train_size,
    )
    try:
        holdout_split = splitter.split(series)
    except InsufficientDataError as e:
        logger.info(f"{product_id}: excluded ({e})")
        return ProductOutcome.from_error(
            product_id,
            ProductStatus.EXCLUDED,
            e,
            duration_sec=time.time() - start_time,
        )

    # Candidate fits are independent of each other
    n_workers = min(config.max_fit_workers, len(models))
    with ThreadPoolExecutor(max_workers=n_workers) as executor:
        results = list(executor.map(
            lambda m: fit_and_evaluate(m, holdout_split, config.log_transform_for_fitting),
            models,
        ))
    records = tuple(record for record, _ in results)

    selector = ModelSelector(primary_metric="rmse")
    try:
        selection = selector.select(
            product_id,
            records,
            {m.name: m for m in models},
            series,
            horizon=config.forecast_horizon,
            log_transform=config.log_transform_for_fitting,
        )
    except NoEligibleModelError as e:
        logger.error(f"{product_id}: {e}")
        return ProductOutcome.from_error(
            product_id,
            ProductStatus.FAILED,
            e,
            metrics=records,
            duration_sec=time.time() - start_time,
            split_info=holdout_split.info,
        )

    return ProductOutcome(
        product_id=product_id,
        status=ProductStatus.FORECASTED,
        metrics=records,
        selection=selection,
        duration_sec=time.time() - start_time,
        split_info=holdout_split.info,
    )


class ForecastPipeline:
    """Runs the per-product pipeline across a series store"""

    def __init__(
        self,
        config: Optional[ForecastConfig] = None,
        models: Optional[Sequence[ForecastModel]] = None
    ):
        """
        Initialize forecasting pipeline

        Args:
            config: Run configuration (defaults to ForecastConfig())
            models: Candidate strategies (defaults to config.models)
        """
        self.config = config or ForecastConfig()
        self.models = list(models) if models is not None else ModelFactory.from_config(self.config)

        names = [m.name for m in self.models]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate candidate model names: {names}")

    def run(self, store: SeriesStore) -> ForecastReport:
        """
        Run every requested product to a terminal state

        Args:
            store: Series store holding cleaned demand series

        Returns:
            ForecastReport with one outcome per requested product
        """
        config = self.config
        products = store.resolve_products(config.candidate_products)

        logger.info(
            f"Starting forecast run: {len(products)} products, "
            f"models={[m.name for m in self.models]}, "
            f"holdout={config.holdout_length}, horizon={config.forecast_horizon}"
        )

        # Silenced on the calling thread only; fitter threads never touch warnings.filters
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            outcomes = self._run_products(store, products)

        report = ForecastReport(outcomes.values(), config=config.to_dict())
        logger.info(f"Forecast run complete: {report.summary()}")
        return report

    def _run_products(self, store: SeriesStore, products: List[str]) -> Dict[str, ProductOutcome]:
        config = self.config
        outcomes: Dict[str, ProductOutcome] = {}
        executor = ThreadPoolExecutor(max_workers=config.max_workers)
        timed_out = False

        try:
            futures = {
                executor.submit(run_product, store.get_series(pid), config, self.models): pid
                for pid in products
            }

            try:
                for future in as_completed(futures, timeout=config.deadline_sec):
                    pid = futures[future]
                    outcomes[pid] = self._collect(pid, future)
                    logger.info(
                        f"[{len(outcomes)}/{len(products)}] {pid}: {outcomes[pid].status.value}"
                    )
            except FutureTimeoutError:
                timed_out = True
                logger.error(
                    f"Run deadline of {config.deadline_sec:g}s exceeded: "
                    f"{len(products) - len(outcomes)} products unfinished"
                )
                for future, pid in futures.items():
                    if pid in outcomes:
                        continue
                    if future.done() and not future.cancelled():
                        outcomes[pid] = self._collect(pid, future)
                        continue
                    future.cancel()
                    outcomes[pid] = ProductOutcome.from_error(
                        pid,
                        ProductStatus.TIMED_OUT,
                        RunTimeoutError(pid, config.deadline_sec),
                    )
        finally:
            # In-flight fits past the deadline are abandoned, not awaited
            executor.shutdown(wait=not timed_out, cancel_futures=True)

        return outcomes

    @staticmethod
    def _collect(product_id: str, future) -> ProductOutcome:
        try:
            return future.result()
        except Exception as e:
            logger.exception(f"{product_id}: pipeline crashed")
            return ProductOutcome.from_error(product_id, ProductStatus.FAILED, e)


def run_forecast(
    store: SeriesStore,
    config: Optional[ForecastConfig] = None,
    models: Optional[List[ForecastModel]] = None
) -> ForecastReport:
    """Run the full pipeline and return the report"""
    return ForecastPipeline(config, models=models).run(store)
