"""tickerdesk - cooperating market-data agents sharing JSON record files."""

__version__ = "1.0.0"
