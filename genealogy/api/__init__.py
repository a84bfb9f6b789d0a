# Explicit re-exports for router imports like:
#   from genealogy.api import IndividualViewSet, ...

from .blocks import BlockViewSet
from .census import CensusView
from .changes import PendingChangeViewSet
from .gedcom import GedcomExportView, GedcomImportView
from .logs import SiteLogViewSet
from .messages import MessageViewSet
from .trees import TreeViewSet
from .viewsets import (
    FamilyViewSet,
    IndividualViewSet,
    MediaObjectViewSet,
    SourceViewSet,
)

__all__ = [
    "BlockViewSet",
    "CensusView",
    "FamilyViewSet",
    "GedcomExportView",
    "GedcomImportView",
    "IndividualViewSet",
    "MediaObjectViewSet",
    "MessageViewSet",
    "PendingChangeViewSet",
    "SiteLogViewSet",
    "SourceViewSet",
    "TreeViewSet",
]
