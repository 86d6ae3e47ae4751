"""Clients for the code-repair service and the deploy providers."""

from .base import ProviderClient
from .railway import RailwayClient
from .render import RenderClient
from .repair import AnalysisReport, CodeRepairClient, RepairRequest, RepairTask
from .vercel import VercelClient

__all__ = [
    "AnalysisReport",
    "CodeRepairClient",
    "ProviderClient",
    "RailwayClient",
    "RenderClient",
    "RepairRequest",
    "RepairTask",
    "VercelClient",
]
