"""Agents: long-lived workers that fetch, merge and present ticker data."""

from .base import Agent, EnrichmentAgent
from .commands import TickerCommands
from .display import DisplayAgent
from .filings import FilingsAgent
from .financials import FinancialsAgent
from .merger import MergerAgent
from .news import NewsAgent
from .reset import ResetAgent
from .scanner import ScannerAgent
from .shorts import ShortsAgent

AGENTS = {
    "news": NewsAgent,
    "shorts": ShortsAgent,
    "filings": FilingsAgent,
    "financials": FinancialsAgent,
    "scanner": ScannerAgent,
    "merger": MergerAgent,
    "reset": ResetAgent,
    "display": DisplayAgent,
}

__all__ = [
    "AGENTS",
    "Agent",
    "DisplayAgent",
    "EnrichmentAgent",
    "FilingsAgent",
    "FinancialsAgent",
    "MergerAgent",
    "NewsAgent",
    "ResetAgent",
    "ScannerAgent",
    "ShortsAgent",
    "TickerCommands",
]
