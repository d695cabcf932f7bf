"""!
@brief app-deploy package root.
@details Modules under this namespace drive the phased install and uninstall
sequence for a single MSI application package: the CLI, the deployment
manifest, the orchestrator, and the toolkit that performs the actual work.
"""

__all__ = [
    "main",
    "orchestrator",
    "models",
    "manifest",
    "constants",
    "toolkit",
    "native_toolkit",
    "msi",
    "command_runner",
    "processes",
    "confirm",
    "fs_tools",
    "registry_tools",
    "guid_utils",
    "logging_ext",
    "version",
]
