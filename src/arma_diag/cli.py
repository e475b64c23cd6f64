# src/arma_diag/cli.py
import argparse
import sys
from pathlib import Path

import pandas as pd

from . import config as cfg
from .data_fetch import fetch_prices
from .errors import PipelineError
from .logging_config import configure_logging, get_logger
from .pipeline import model_returns, prepare_returns, run_pipeline
from .preprocess_stationary import load_return_matrix, write_return_matrix
from .stationarity_checks import adf_report

logger = get_logger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="arma-diag",
        description="Log-return preprocessing, ARMA selection and residual diagnostics per asset.",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML file overriding PipelineConfig fields")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding <asset>_stock_data.csv files")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("fetch", help="Download raw price files with yfinance")

    p_pre = sub.add_parser("preprocess", help="Build the wide log-return matrix from price files")
    p_pre.add_argument("--returns", type=Path, default=cfg.RETURNS_PATH)
    p_pre.add_argument("--workers", type=int, default=None)

    p_model = sub.add_parser("model", help="Fit candidate ARMA models on an existing return matrix")
    p_model.add_argument("--returns", type=Path, default=cfg.RETURNS_PATH)
    p_model.add_argument("--report", type=Path, default=cfg.REPORT_PATH)
    p_model.add_argument("--plots-dir", type=Path, default=None)
    p_model.add_argument("--workers", type=int, default=None)

    p_run = sub.add_parser("run", help="Preprocess, model and report in one go")
    p_run.add_argument("--returns", type=Path, default=None, help="Also save the return matrix here")
    p_run.add_argument("--report", type=Path, default=cfg.REPORT_PATH)
    p_run.add_argument("--plots-dir", type=Path, default=None)
    p_run.add_argument("--workers", type=int, default=None)
    return parser


def _print_stationarity(preprocessed):
    for p in preprocessed:
        print(adf_report(p.level_test, f"{p.asset_id} on original data"))
        print(adf_report(p.return_test, f"{p.asset_id} on log-differenced data"))


def _finish(report, artifacts, args):
    report.write_csv(args.report)
    if args.plots_dir is not None:
        from .plots import save_all_plots
        save_all_plots(artifacts, args.plots_dir)
    with pd.option_context("display.width", 160, "display.max_columns", 20):
        print(report.to_frame())
    skipped = report.skipped_frame()
    if not skipped.empty:
        print("\nSkipped assets:")
        print(skipped.to_string(index=False))


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, format_json=args.json_logs)

    try:
        config = cfg.load_config(args.config, data_dir=args.data_dir)

        if args.command == "fetch":
            paths = fetch_prices(config)
            print(f"Saved {len(paths)} price files to {Path(config.data_dir).resolve()}")

        elif args.command == "preprocess":
            sources = {asset: config.price_path(asset) for asset in config.assets}
            matrix, preprocessed, report = prepare_returns(sources, config, max_workers=args.workers)
            _print_stationarity(preprocessed)
            write_return_matrix(matrix, args.returns)
            print(f"Return matrix {matrix.shape} saved to {args.returns.resolve()}")
            for s in report.skipped:
                print(f"Skipping {s.asset_id} ({s.reason})")

        elif args.command == "model":
            matrix = load_return_matrix(args.returns)
            report, artifacts = model_returns(matrix, config, max_workers=args.workers,
                                              collect_artifacts=args.plots_dir is not None)
            _finish(report, artifacts, args)

        elif args.command == "run":
            result = run_pipeline(config, max_workers=args.workers,
                                  collect_artifacts=args.plots_dir is not None)
            _print_stationarity(result.preprocessed)
            if args.returns is not None:
                write_return_matrix(result.matrix, args.returns)
            _finish(result.report, result.artifacts, args)

    except (PipelineError, FileNotFoundError) as e:
        logger.error("aborted", error=str(e), error_type=type(e).__name__)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
