"""App Sync Operator: fetch, template, deploy and inspect Apps on Kubernetes."""

__version__ = "0.1.0"
