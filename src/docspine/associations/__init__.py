"""Docspine associations -- relationship declarations, proxies and cascade.

Architecture::

    descriptors.py  BelongsTo / Many / One declarations (descriptors)
    proxies.py      EmbeddedCollection, ManyProxy, IdArrayProxy
    resolver.py     AssociationResolver (embedded load/dump, cascade destroy)
"""

from docspine.associations.descriptors import (
    Association,
    AssociationKind,
    BelongsTo,
    Many,
    One,
)
from docspine.associations.proxies import EmbeddedCollection, IdArrayProxy, ManyProxy
from docspine.associations.resolver import AssociationResolver

__all__ = [
    "Association",
    "AssociationKind",
    "BelongsTo",
    "Many",
    "One",
    "EmbeddedCollection",
    "IdArrayProxy",
    "ManyProxy",
    "AssociationResolver",
]
