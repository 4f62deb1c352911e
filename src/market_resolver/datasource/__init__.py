"""Metric and price data sources."""

from market_resolver.datasource.base import DataSourceAdapter
from market_resolver.datasource.hyperliquid import HyperliquidDataSource

__all__ = ["DataSourceAdapter", "HyperliquidDataSource"]
