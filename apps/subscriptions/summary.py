"""
Plan permission summary: how much of the module catalog a plan unlocks.
"""

from typing import Iterable, List
from framework.numbers import percentage
from .limits import coerce_limits, format_limit_key, module_label
from .models import ModulePermission, SystemModule
from .schemas import ModuleDetail, PermissionSummary

MAX_KEY_LIMITATIONS = 3


def summarize_permissions(
    modules: Iterable[SystemModule],
    permissions: Iterable[ModulePermission],
) -> PermissionSummary:
    """Join the catalog with a plan's permission rows.

    A module without a permission row is not granted. ``key_limitations`` lists
    "<value> <limit>" for the limits of enabled modules, in catalog order,
    capped at three entries overall.
    """
    by_name = {permission.module_name: permission for permission in permissions}
    details: List[ModuleDetail] = []
    limitations: List[str] = []

    for module in modules:
        permission = by_name.get(module.name)
        is_enabled = bool(permission and permission.is_enabled)
        limits = dict(permission.limits or {}) if permission else {}
        details.append(ModuleDetail(
            name=module.name,
            label=module_label(module.name),
            is_enabled=is_enabled,
            limits=limits,
        ))
        if is_enabled:
            limitations.extend(f"{value} {format_limit_key(key)}" for key, value in coerce_limits(limits).items())

    enabled = sum(1 for detail in details if detail.is_enabled)
    return PermissionSummary(
        total_modules=len(details),
        enabled_modules=enabled,
        enabled_percentage=percentage(enabled, len(details)),
        key_limitations=limitations[:MAX_KEY_LIMITATIONS],
        module_details=details,
    )
