from hostmonitor.config import settings
from hostmonitor.resources.monitor import ResourceMonitor

# Initialize globals
resources = ResourceMonitor.from_settings(settings)
