"""Multi-client daily shorts production agent."""

from .orchestrator import RunOrchestrator
from .scheduler import ClientScheduler
from .version import __version__
from .webhooks import create_app

__all__ = ["ClientScheduler", "RunOrchestrator", "create_app", "__version__"]
