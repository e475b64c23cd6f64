import time
from pathlib import Path

import pandas as pd
import yfinance as yf

from .config import PipelineConfig
from .errors import DataQualityError
from .logging_config import get_logger

logger = get_logger(__name__)


def fetch_prices(config: PipelineConfig, retries=3, delay=3, overwrite=False):
    """
    Download daily OHLC history for every configured asset and store it as
    <data_dir>/<asset>_stock_data.csv, in the layout yfinance writes (a
    header row followed by the "Ticker" and "Date" label rows).

    Returns the list of paths written or already present.
    """
    written = []
    failed = []

    for asset in config.assets:
        path = config.price_path(asset)
        if path.exists() and not overwrite:
            logger.info("price_file_exists", asset=asset, path=str(path))
            written.append(path)
            continue

        ticker = config.tickers.get(asset, asset)
        attempt = 0
        while attempt < retries:
            try:
                logger.info("fetching", asset=asset, ticker=ticker, attempt=attempt + 1)
                df = yf.download(
                    ticker, start=config.start, end=config.end,
                    progress=False, auto_adjust=False
                )
                if df is not None and not df.empty and config.price_column in df.columns.get_level_values(0):
                    path.parent.mkdir(parents=True, exist_ok=True)
                    df.to_csv(path)
                    logger.info("fetched", asset=asset, rows=len(df), path=str(path))
                    written.append(path)
                    break
                logger.warning("empty_download", asset=asset, ticker=ticker)
            except Exception as e:  # network and parsing errors from yfinance
                logger.warning("fetch_error", asset=asset, ticker=ticker, error=str(e))
            attempt += 1
            time.sleep(delay)
        else:
            failed.append(asset)

    if not written:
        raise RuntimeError("No data fetched, check network or ticker symbols.")
    if failed:
        logger.warning("fetch_incomplete", failed=failed)
    return written


def load_price_file(path, column='Close'):
    """
    Raw values of the price column, in file order. Label rows and blanks are
    passed through untouched; the preprocessor decides what is numeric.
    """
    path = Path(path)
    if not path.exists():
        raise DataQualityError(f"{path} not found.", context={"path": str(path)})
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataQualityError(f"{path.name} is unreadable: {e}", context={"path": str(path)}) from e
    if column not in df.columns:
        raise DataQualityError(
            f"{path.name} has no '{column}' column",
            context={"path": str(path), "columns": list(df.columns)},
        )
    return df[column].tolist()

