"""
Content Snapshot Normalizer

Canonicalizes module content so a baseline assessment can tell whether the
modules it was generated from have changed. Two content sets holding the same
modules, topics and objectives compare equal no matter how ingestion ordered
them.
"""

import json
from typing import Any, Dict, Iterable, List, Mapping, Union

from onboarding.assessments.models import ModuleDescriptor

DescriptorLike = Union[ModuleDescriptor, Mapping[str, Any]]


def _as_mapping(descriptor: DescriptorLike) -> Any:
    if isinstance(descriptor, ModuleDescriptor):
        return descriptor.to_dict()
    return descriptor


def _sorted_strings(values: Any) -> List[str]:
    if not isinstance(values, (list, tuple)):
        return []
    return sorted(str(value).strip() for value in values)


def canonical_descriptors(descriptors: Iterable[DescriptorLike]) -> List[Dict[str, Any]]:
    """
    Return the descriptors in canonical order with sorted topic/objective lists.

    Entries that are not objects or lack a string title are dropped. Only
    title, topics and objectives take part; module ids do not.
    """
    canonical = []
    for descriptor in descriptors or []:
        data = _as_mapping(descriptor)
        if not isinstance(data, Mapping) or not isinstance(data.get("title"), str):
            continue
        canonical.append({
            "title": data["title"].strip(),
            "topics": _sorted_strings(data.get("topics")),
            "objectives": _sorted_strings(data.get("objectives")),
        })
    canonical.sort(key=lambda item: (item["title"], item["topics"], item["objectives"]))
    return canonical


def normalize(descriptors: Iterable[DescriptorLike]) -> str:
    """
    Serialize descriptors into their canonical, order-independent form.

    Args:
        descriptors: Module descriptors or raw module objects

    Returns:
        Deterministic JSON string
    """
    return json.dumps(
        canonical_descriptors(descriptors),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def snapshots_equal(first: Iterable[DescriptorLike], second: Iterable[DescriptorLike]) -> bool:
    return normalize(first) == normalize(second)
