# src/arma_diag/plots.py
# Renders DiagnosticArtifacts to PNG files; nothing in the core imports this.
import os
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from scipy import stats

from .logging_config import get_logger

logger = get_logger(__name__)


def _correlogram(ax, values, n, title):
    lags = np.arange(len(values))
    ax.vlines(lags, 0, values, colors='black')
    ax.axhline(0, color='black', linewidth=0.8)
    if n > 0:
        band = 1.96 / np.sqrt(n)
        ax.axhline(band, color='blue', linestyle='--', linewidth=0.8)
        ax.axhline(-band, color='blue', linestyle='--', linewidth=0.8)
    ax.set_title(title)
    ax.set_xlabel('Lag')


def plot_acf_pacf(artifacts, out_dir):
    fig, axes = plt.subplots(1, 2, figsize=(12, 4))
    # lag 0 is always 1, skip it for the PACF panel
    _correlogram(axes[0], artifacts.train_acf, artifacts.n_train, f"ACF - {artifacts.asset_id}")
    _correlogram(axes[1], artifacts.train_pacf[1:], artifacts.n_train, f"PACF - {artifacts.asset_id}")
    path = Path(out_dir) / f"{artifacts.asset_id}_ACF_PACF.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def plot_residuals(artifacts, out_dir):
    fig, axes = plt.subplots(1, 2, figsize=(12, 4), gridspec_kw={'width_ratios': [3, 1]})
    axes[0].plot(artifacts.residuals, linewidth=0.6)
    axes[0].set_title(f"Residuals - {artifacts.asset_id}")
    axes[1].boxplot(artifacts.residuals[np.isfinite(artifacts.residuals)])
    axes[1].set_title(f"Boxplot of Residuals - {artifacts.asset_id}")
    path = Path(out_dir) / f"{artifacts.asset_id}_Residuals.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def plot_histogram(artifacts, out_dir, bins=30):
    resid = artifacts.residuals[np.isfinite(artifacts.residuals)]
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.hist(resid, bins=bins, density=True, color='lightblue', edgecolor='black')
    if len(resid) > 1 and np.ptp(resid) > 0:
        grid = np.linspace(resid.min(), resid.max(), 200)
        ax.plot(grid, stats.gaussian_kde(resid)(grid), color='red', linewidth=2)
    ax.set_title(f"Histogram of Residuals - {artifacts.asset_id}")
    ax.set_xlabel('Residuals')
    path = Path(out_dir) / f"{artifacts.asset_id}_Histogram.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def plot_squared_residuals(artifacts, out_dir):
    fig, ax = plt.subplots(figsize=(12, 4))
    ax.plot(artifacts.squared_residuals, linewidth=0.6, color='darkorange')
    ax.set_title(f"Squared Residuals - {artifacts.asset_id}")
    path = Path(out_dir) / f"{artifacts.asset_id}_Squared_Residuals.png"
    fig.savefig(path)
    plt.close(fig)
    return path


def save_asset_plots(artifacts, out_dir):
    os.makedirs(out_dir, exist_ok=True)
    paths = [
        plot_acf_pacf(artifacts, out_dir),
        plot_residuals(artifacts, out_dir),
        plot_histogram(artifacts, out_dir),
        plot_squared_residuals(artifacts, out_dir),
    ]
    logger.info("plots_saved", asset=artifacts.asset_id, out_dir=str(out_dir), files=len(paths))
    return paths


def save_all_plots(artifacts_by_asset, out_dir):
    saved = {}
    for asset, artifacts in artifacts_by_asset.items():
        saved[asset] = save_asset_plots(artifacts, out_dir)
    return saved
