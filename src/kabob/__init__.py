__version__ = "1.0.0"

from kabob.dependencies import add_internal_dependencies, remove_dependencies, version_token
from kabob.manifest import ManifestError, read_manifest, write_manifest
from kabob.package_manager import (
    PackageManager,
    PackageManagerError,
    detect_package_manager,
    resolve_command,
    run_command,
)
from kabob.scaffold import PackageDetails, ScaffoldError, create_package, delete_package, init_workspace
from kabob.templates import PackageTemplate, TemplateError, get_template, list_templates
from kabob.workspaces import (
    Workspace,
    WorkspaceError,
    discover_workspaces,
    find_internal_packages,
    find_root_manifest,
    load_workspaces,
)

__all__ = [
    "ManifestError",
    "PackageDetails",
    "PackageManager",
    "PackageManagerError",
    "PackageTemplate",
    "ScaffoldError",
    "TemplateError",
    "Workspace",
    "WorkspaceError",
    "__version__",
    "add_internal_dependencies",
    "create_package",
    "delete_package",
    "detect_package_manager",
    "discover_workspaces",
    "find_internal_packages",
    "find_root_manifest",
    "get_template",
    "init_workspace",
    "list_templates",
    "load_workspaces",
    "read_manifest",
    "remove_dependencies",
    "resolve_command",
    "run_command",
    "version_token",
    "write_manifest",
]
